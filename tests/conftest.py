import textwrap
from collections.abc import Generator
from typing import Any, Callable

import httpx
import pytest


def build_ics(*events: str) -> str:
    """Wrap VEVENT bodies (without BEGIN/END lines) into a VCALENDAR document.

    Bodies are dedented, so folded continuation lines keep their one leading
    space relative to the block. Uses CRLF line endings like real feeds.
    """
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//icsfeed tests//EN"]
    for body in events:
        lines.append("BEGIN:VEVENT")
        lines.extend(textwrap.dedent(body).strip("\n").splitlines())
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def ics() -> Callable[..., str]:
    """Return the VCALENDAR builder used across tests."""
    return build_ics


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory for httpx clients backed by an in-process request handler."""
    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _factory


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure icsfeed environment variables do not leak between tests."""
    monkeypatch.delenv("ICSFEED_DEBUG", raising=False)
    monkeypatch.delenv("ICSFEED_LOG_LEVEL", raising=False)
    yield
