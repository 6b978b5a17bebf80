"""Shared fakes: an in-memory websocket and a scripted connector."""

import asyncio
import json
from typing import Any, Callable, Optional, Union

import pytest

_END = object()


class FakeWebSocket:
    """Duplex text socket driven by the test."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed: Optional[tuple[int, str]] = None
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    def feed(self, frame: Union[str, bytes]) -> None:
        self._incoming.put_nowait(frame)

    def fail(self, error: Optional[BaseException] = None) -> None:
        self._incoming.put_nowait(error or OSError("connection reset"))

    def end(self) -> None:
        self._incoming.put_nowait(_END)

    async def send(self, frame: str) -> None:
        if self.closed is not None:
            raise OSError("socket is closed")
        self.sent.append(frame)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed is None:
            self.closed = (code, reason)
        self._incoming.put_nowait(_END)

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> Any:
        item = await self._incoming.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class _FakeConnect:
    def __init__(self, connector: "FakeConnector", outcome: Union[FakeWebSocket, BaseException]):
        self._connector = connector
        self._outcome = outcome

    async def __aenter__(self) -> FakeWebSocket:
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        self._connector.sockets.append(self._outcome)
        return self._outcome

    async def __aexit__(self, *exc_info: Any) -> bool:
        if isinstance(self._outcome, FakeWebSocket):
            await self._outcome.close()
        return False


class FakeConnector:
    """Stands in for ``websockets.connect``; each attempt takes the next scripted outcome."""

    def __init__(self, *outcomes: Union[FakeWebSocket, BaseException]):
        self._outcomes = list(outcomes)
        self.attempts: list[tuple[str, dict[str, Any]]] = []
        self.attempt_times: list[float] = []
        self.sockets: list[FakeWebSocket] = []

    def __call__(self, url: str, **kwargs: Any) -> _FakeConnect:
        self.attempts.append((url, kwargs))
        self.attempt_times.append(asyncio.get_running_loop().time())
        outcome = self._outcomes.pop(0) if self._outcomes else FakeWebSocket()
        return _FakeConnect(self, outcome)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


FAST_SOCKET_OPTIONS = {"invalid_url_interval": 0.01, "reconnect_delay": 0.02}


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()
