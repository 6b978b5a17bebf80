"""
NeuroGame and AsyncNeuroGame, the main SDK clients.

Holds the registered actions, runs incoming action requests against them
and coordinates forced actions. The websocket itself is owned by
``SocketManager``.
"""

import asyncio
import concurrent.futures
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Optional, Sequence, Union

from pydantic import ValidationError

from neuro_game_sdk.actions import NeuroAction
from neuro_game_sdk.config import DEFAULT_URL, SDKConfig
from neuro_game_sdk.errors import ConfigError, ConnectionError
from neuro_game_sdk.models.messages import ActionDescription, ActionExecute, Command, NeuroMessage
from neuro_game_sdk.transport.envelope import (
    build_action_result,
    build_context,
    build_force_actions,
    build_register_actions,
    build_unregister_actions,
)
from neuro_game_sdk.transport.websocket import CloseInfo, SocketManager

logger = logging.getLogger(__name__)

ForcedActionCallback = Callable[[NeuroAction[Any]], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class ForcedActionRound:
    query: str
    action_names: tuple[str, ...]
    callback: Optional[ForcedActionCallback] = None


class AsyncNeuroGame:
    """Async Neuro API client (primary).

    All methods must be called from the event loop that runs ``start()``.
    """

    def __init__(self, game: str, url: str = DEFAULT_URL, **socket_options: Any):
        self.game = game
        self._registered_actions: dict[str, NeuroAction[Any]] = {}
        self._forced_round: Optional[ForcedActionRound] = None
        self._process_tasks: set[asyncio.Task[None]] = set()
        self._socket = SocketManager(
            game,
            url,
            process_command=self.process_command,
            registered_actions=self._describe_registered_actions,
            **socket_options,
        )

    @classmethod
    def from_config(cls, config: SDKConfig, **socket_options: Any) -> "AsyncNeuroGame":
        if not config.game:
            raise ConfigError("A game name is required. Set it in the config file or NEURO_SDK_GAME.")
        return cls(config.game, config.url, **{**config.socket_options(), **socket_options})

    @property
    def url(self) -> str:
        return self._socket.url

    @url.setter
    def url(self, url: str) -> None:
        self._socket.url = url

    @property
    def connected(self) -> bool:
        return self._socket.connected

    @property
    def close_info(self) -> Optional[CloseInfo]:
        return self._socket.close_info

    @property
    def registered_actions(self) -> dict[str, NeuroAction[Any]]:
        return dict(self._registered_actions)

    @property
    def forced_actions(self) -> set[str]:
        return set(self._forced_round.action_names) if self._forced_round else set()

    def _describe_registered_actions(self) -> list[ActionDescription]:
        return [action.describe() for action in self._registered_actions.values()]

    async def start(self) -> None:
        """Connect and keep reconnecting until ``shutdown()``."""
        await self._socket.start()

    async def reconnect(self, message: str = "Reconnecting!") -> None:
        await self._socket.reconnect(message)

    async def shutdown(self, message: str = "Shutting down!") -> None:
        await self._socket.close_normally(message)

    async def wait_for_processes(self, timeout: Optional[float] = None) -> None:
        """Wait up to ``timeout`` seconds for in-flight ``process`` tasks."""
        if self._process_tasks:
            await asyncio.wait(set(self._process_tasks), timeout=timeout)

    async def send_context(self, message: str, silent: bool = False) -> None:
        logger.info("Sending%scontext: %s", " silent " if silent else " ", message)
        self._socket.send(build_context(message, silent))

    async def register_actions(self, *actions: NeuroAction[Any]) -> None:
        self._register(actions)

    def _register(self, actions: Sequence[NeuroAction[Any]]) -> None:
        if not actions:
            return
        logger.info("Registering actions: %s", ", ".join(action.name for action in actions))
        self._socket.send(build_register_actions([action.describe() for action in actions]))
        for action in actions:
            self._registered_actions[action.name] = action

    async def unregister_actions(self, *names: str) -> None:
        self._unregister(names)

    def _unregister(self, names: Sequence[str]) -> None:
        if not names:
            return
        logger.info("Unregistering actions: %s", ", ".join(names))
        self._socket.send(build_unregister_actions(names))
        for name in names:
            self._registered_actions.pop(name, None)

    async def force_action(
        self,
        state: Optional[str],
        query: str,
        ephemeral: bool,
        actions: Sequence[NeuroAction[Any]],
        callback: Optional[ForcedActionCallback] = None,
    ) -> None:
        """Ask the agent to pick one of ``actions`` right now.

        Only one forced action can be outstanding; further requests are
        dropped with a warning until one of the offered actions executes.
        ``callback`` is invoked with the action that resolved the round.
        """
        if not actions:
            return
        names = tuple(action.name for action in actions)
        if self._forced_round is not None:
            logger.warning(
                "Attempted to send force action while already waiting on another force action! (%s)",
                ", ".join(self._forced_round.action_names),
            )
            logger.warning("Requested force action: '%s': %s", query, ", ".join(names))
            return
        logger.info("Sending forced action: '%s': %s", query, ", ".join(names))
        self._forced_round = ForcedActionRound(query=query, action_names=names, callback=callback)
        try:
            self._register(actions)
        except Exception:
            self._forced_round = None
            raise
        self._socket.send(build_force_actions(state, query, ephemeral, names))

    async def process_command(self, message: NeuroMessage) -> Optional[NeuroMessage]:
        """Handle an inbound command; returns the response to send, if any."""
        if message.command == Command.ACTION:
            if message.data is None:
                return None
            return await self.process_action(ActionExecute.model_validate(message.data))
        # Other server commands are not handled yet.
        return None

    async def process_action(self, execute: ActionExecute) -> NeuroMessage:
        id, name, data = execute.id, execute.name, execute.data
        logger.info("Processing action: %s (%s)", name, id)
        action = self._registered_actions.get(name)
        if action is None:
            logger.warning("Unsuccessful: Action '%s' not found! (%s)", name, id)
            return build_action_result(id, False, f"Action '{name}' not found!")

        value: Any = None
        if action.takes_payload:
            if data is None:
                logger.warning("Unsuccessful: Missing data field for action '%s'! (%s)", name, id)
                return build_action_result(id, False, f"Missing data field for action '{name}'!")
            try:
                value = action.deserialize(data)
            except ValidationError:
                logger.warning("Unsuccessful: Could not deserialize data for '%s' (%s): %s", name, id, data, exc_info=True)
                return build_action_result(id, False, "Could not deserialize data!")

        error = action.validate(value)
        if error:
            logger.warning("Unsuccessful: Failed validation of '%s' (%s): %s", name, id, error)
            return build_action_result(id, False, error)

        self._launch_process(action, value)
        await self._resolve_forced_round(action)
        return build_action_result(id, True, action.success_message(value))

    def _launch_process(self, action: NeuroAction[Any], value: Any) -> None:
        task = asyncio.create_task(self._run_process(action, value))
        self._process_tasks.add(task)
        task.add_done_callback(self._process_tasks.discard)

    @staticmethod
    async def _run_process(action: NeuroAction[Any], value: Any) -> None:
        try:
            await action.process(value)
        except Exception:
            action.logger.exception("Error while processing action '%s'", action.name)

    async def _resolve_forced_round(self, action: NeuroAction[Any]) -> None:
        forced_round = self._forced_round
        if forced_round is None or action.name not in forced_round.action_names:
            return
        logger.info("Resolved forced action: %s", action.name)
        self._forced_round = None
        self._unregister(forced_round.action_names)
        if forced_round.callback is None:
            return
        try:
            result = forced_round.callback(action)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Forced action callback failed for '%s'", action.name)


class NeuroGame:
    """Thread-backed wrapper around AsyncNeuroGame for games without an event loop.

    The event loop runs in a daemon thread. Calls are fire-and-forget and
    return a ``concurrent.futures.Future``.
    """

    def __init__(self, game: str, url: str = DEFAULT_URL, **socket_options: Any):
        self._async = AsyncNeuroGame(game, url, **socket_options)
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name=f"neuro-game-{game}", daemon=True)
        self._thread.start()
        self._runner: Optional[concurrent.futures.Future[None]] = None

    @classmethod
    def from_config(cls, config: SDKConfig, **socket_options: Any) -> "NeuroGame":
        if not config.game:
            raise ConfigError("A game name is required. Set it in the config file or NEURO_SDK_GAME.")
        return cls(config.game, config.url, **{**config.socket_options(), **socket_options})

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future[Any]:
        if self._loop.is_closed() or not self._thread.is_alive():
            coro.close()
            raise ConnectionError("NeuroGame was shut down.")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        future.add_done_callback(_log_failure)
        return future

    @property
    def game(self) -> str:
        return self._async.game

    @property
    def url(self) -> str:
        return self._async.url

    @url.setter
    def url(self, url: str) -> None:
        self._loop.call_soon_threadsafe(setattr, self._async, "url", url)

    @property
    def connected(self) -> bool:
        return self._async.connected

    @property
    def registered_actions(self) -> dict[str, NeuroAction[Any]]:
        return self._async.registered_actions

    @property
    def forced_actions(self) -> set[str]:
        return self._async.forced_actions

    def start(self) -> concurrent.futures.Future[None]:
        if self._runner is None or self._runner.done():
            self._runner = self._submit(self._async.start())
        return self._runner

    def reconnect(self, message: str = "Reconnecting!") -> concurrent.futures.Future[None]:
        return self._submit(self._async.reconnect(message))

    def send_context(self, message: str, silent: bool = False) -> concurrent.futures.Future[None]:
        return self._submit(self._async.send_context(message, silent))

    def register_actions(self, *actions: NeuroAction[Any]) -> concurrent.futures.Future[None]:
        return self._submit(self._async.register_actions(*actions))

    def unregister_actions(self, *names: str) -> concurrent.futures.Future[None]:
        return self._submit(self._async.unregister_actions(*names))

    def force_action(
        self,
        state: Optional[str],
        query: str,
        ephemeral: bool,
        actions: Sequence[NeuroAction[Any]],
        callback: Optional[ForcedActionCallback] = None,
    ) -> concurrent.futures.Future[None]:
        return self._submit(self._async.force_action(state, query, ephemeral, actions, callback))

    def shutdown(self, message: str = "Shutting down!", timeout: float = 5.0) -> None:
        """Close the connection normally and stop the event loop thread.

        In-flight ``process`` tasks get ``timeout`` seconds to finish before
        the loop stops; anything still running after that is cancelled.
        """
        if self._loop.is_closed():
            return
        self._submit(self._async.shutdown(message)).result(timeout)
        if self._runner is not None:
            try:
                self._runner.result(timeout)
            except concurrent.futures.TimeoutError:
                logger.warning("Socket manager did not stop within %ss", timeout)
        asyncio.run_coroutine_threadsafe(self._async.wait_for_processes(timeout), self._loop).result()
        asyncio.run_coroutine_threadsafe(_cancel_pending(), self._loop).result(timeout)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._loop.close()


async def _cancel_pending() -> None:
    current = asyncio.current_task()
    pending = [task for task in asyncio.all_tasks() if task is not current]
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)


def _log_failure(future: concurrent.futures.Future[Any]) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("NeuroGame call failed: %s", error, exc_info=error)
