"""
Websocket connection manager for the Neuro API.

Keeps exactly one connection alive at a time and reconnects forever until
closed normally:

    awaiting valid url -> connecting -> connected -> backoff -> awaiting valid url

While connected a send loop drains the outgoing queue and a receive loop
hands decoded frames to the command processor. Either loop ending on its
own is treated as an error and triggers a reconnect.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import websockets

from neuro_game_sdk.models.messages import ActionDescription, NeuroMessage
from neuro_game_sdk.transport.envelope import build_register_actions, build_startup, parse_message, to_frame

logger = logging.getLogger(__name__)

REQUIRED_SCHEME = "ws://"
DEFAULT_INVALID_URL_INTERVAL = 1.0
DEFAULT_RECONNECT_DELAY = 2.0
DEFAULT_PING_INTERVAL = 5.0

CommandProcessor = Callable[[NeuroMessage], Awaitable[Optional[NeuroMessage]]]
RegisteredActionsProvider = Callable[[], list[ActionDescription]]


class CloseReason(enum.Enum):
    """Why a connection ended. The value is the websocket close code."""
    NORMAL = 1000
    RECONNECT = 1012
    INVALID_URL = None
    ERROR = 1011

    @property
    def code(self) -> Optional[int]:
        return self.value


@dataclass(frozen=True)
class CloseInfo:
    reason: CloseReason
    message: str
    cause: Optional[BaseException] = None


@dataclass
class Session:
    """State of one physical connection; rebuilt on every reconnect."""
    websocket: Any
    outgoing: "asyncio.Queue[NeuroMessage]"
    send_task: Optional["asyncio.Task[None]"] = None
    receive_task: Optional["asyncio.Task[None]"] = None


_BACKOFF_MESSAGES = {
    CloseReason.RECONNECT: "Websocket closed for reconnect.",
    CloseReason.INVALID_URL: "Websocket could not connect due to invalid url!",
    CloseReason.ERROR: "Websocket closed due to error!",
    None: "Websocket closed without any information?",
}


class SocketManager:
    def __init__(
        self,
        game: str,
        url: str,
        process_command: CommandProcessor,
        registered_actions: RegisteredActionsProvider,
        connect: Callable[..., Any] = websockets.connect,
        invalid_url_interval: float = DEFAULT_INVALID_URL_INTERVAL,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        ping_interval: Optional[float] = DEFAULT_PING_INTERVAL,
    ):
        self._game = game
        self._url = url
        self._process_command = process_command
        self._registered_actions = registered_actions
        self._connect = connect
        self._invalid_url_interval = invalid_url_interval
        self._reconnect_delay = reconnect_delay
        self._ping_interval = ping_interval
        self._outgoing: asyncio.Queue[NeuroMessage] = asyncio.Queue()
        self._session: Optional[Session] = None
        self._shutdown = False
        self.close_info: Optional[CloseInfo] = None

    @property
    def url(self) -> str:
        return self._url

    @url.setter
    def url(self, url: str) -> None:
        self._url = url

    @property
    def close_message(self) -> str:
        return self.close_info.message if self.close_info else "No close reason provided."

    @property
    def is_closed(self) -> bool:
        return self.close_info is not None

    @property
    def is_errored(self) -> bool:
        return self.close_info is not None and self.close_info.reason is CloseReason.ERROR

    @property
    def connected(self) -> bool:
        return self._session is not None and self.close_info is None

    def send(self, message: NeuroMessage) -> None:
        """Queue a message. Never blocks; the game name is stamped when it is written."""
        self._outgoing.put_nowait(message)

    async def start(self) -> None:
        """Run the connection state machine until closed normally."""
        while await self._wait_for_valid_url():
            self.close_info = None
            try:
                async with self._connect(self._url, ping_interval=self._ping_interval, max_size=None) as websocket:
                    await self._run_session(websocket)
            except Exception as e:
                await self.close_with_error("Websocket errored!", e)
            finally:
                self._session = None

            reason = self.close_info.reason if self.close_info else None
            if reason is CloseReason.NORMAL or self._shutdown:
                logger.info("Websocket closed normally")
                return
            logger.warning("%s Reconnecting in %s seconds...", _BACKOFF_MESSAGES[reason], self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)

    async def _wait_for_valid_url(self) -> bool:
        """Poll until the url is usable. Returns False once shutdown was requested."""
        while not self._shutdown and not self._url.startswith(REQUIRED_SCHEME):
            self.close_info = CloseInfo(CloseReason.INVALID_URL, f"Invalid URL: {self._url}")
            await asyncio.sleep(self._invalid_url_interval)
        return not self._shutdown

    async def _run_session(self, websocket: Any) -> None:
        session = Session(websocket=websocket, outgoing=self._outgoing)
        self._session = session
        if self.close_info is not None:
            # Closed while the connection was being opened
            await self._close_transport(session, self.close_info)
            return

        logger.info("Sending startup message for '%s'.", self._game)
        await websocket.send(to_frame(build_startup(), self._game))
        actions = self._registered_actions()
        if actions:
            logger.info(
                "Previously registered actions found, re-registering: %s",
                ", ".join(action.name for action in actions),
            )
            await websocket.send(to_frame(build_register_actions(actions), self._game))
        # Outstanding forced actions are not re-sent.
        if self.close_info is not None:
            # Closed during the handshake; the transport is already closed
            return

        session.receive_task = asyncio.create_task(self._guard("Receive", self._receive_loop(session)))
        session.send_task = asyncio.create_task(self._guard("Send", self._send_loop(session)))
        await asyncio.gather(session.receive_task, session.send_task, return_exceptions=True)

    async def _guard(self, name: str, loop: Awaitable[None]) -> None:
        try:
            await loop
        except Exception as e:
            await self.close_with_error(f"{name} loop errored!", e)
            return
        if self.close_info is None:
            await self.close_with_error(f"{name} loop stopped unexpectedly...")

    async def _send_loop(self, session: Session) -> None:
        while True:
            message = await session.outgoing.get()
            frame = to_frame(message, self._game)
            logger.debug("Sending: %s", frame)
            await session.websocket.send(frame)

    async def _receive_loop(self, session: Session) -> None:
        async for frame in session.websocket:
            if not isinstance(frame, str):
                continue
            text = frame.strip()
            logger.debug("Received: %s", text)
            try:
                message = parse_message(text)
                response = await self._process_command(message)
            except Exception:
                logger.warning("Error while processing message: %s", text, exc_info=True)
                continue
            if response is not None:
                session.outgoing.put_nowait(response)

    async def close_normally(self, message: str = "Shutting down!") -> None:
        await self._close(CloseInfo(CloseReason.NORMAL, message))

    async def reconnect(self, message: str = "Reconnecting!") -> None:
        await self._close(CloseInfo(CloseReason.RECONNECT, message))

    async def close_with_error(self, message: str, cause: Optional[BaseException] = None) -> None:
        await self._close(CloseInfo(CloseReason.ERROR, message, cause))

    async def _close(self, info: CloseInfo) -> None:
        if info.reason is CloseReason.NORMAL:
            self._shutdown = True
        if self.close_info is not None:
            return
        self.close_info = info
        logger.info("Closing websocket: %s - %s", info.reason.name, info.message)
        if info.cause is not None:
            logger.warning("Websocket close cause:", exc_info=info.cause)
        session = self._session
        if session is None:
            return
        current = asyncio.current_task()
        for task in (session.send_task, session.receive_task):
            if task is not None and task is not current:
                task.cancel()
        await self._close_transport(session, info)

    @staticmethod
    async def _close_transport(session: Session, info: CloseInfo) -> None:
        try:
            await session.websocket.close(code=info.reason.code or 1000, reason=info.message)
        except Exception:
            logger.debug("Closing the websocket failed", exc_info=True)
