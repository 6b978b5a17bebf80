"""Socket manager state machine over a fake transport."""

import asyncio
from typing import Optional

import pytest

from neuro_game_sdk.models.messages import ActionDescription, Command, NeuroMessage
from neuro_game_sdk.transport.envelope import build_action_result, build_context
from neuro_game_sdk.transport.websocket import CloseReason, SocketManager

from conftest import FAST_SOCKET_OPTIONS, FakeConnector, FakeWebSocket, wait_until


class Recorder:
    """Command processor that answers every ``action`` with a success result."""

    def __init__(self) -> None:
        self.received: list[NeuroMessage] = []

    async def __call__(self, message: NeuroMessage) -> Optional[NeuroMessage]:
        self.received.append(message)
        if message.command == "boom":
            raise RuntimeError("processor failed")
        if message.command == Command.ACTION:
            return build_action_result(message.data["id"], True, "ok")
        return None


def make_manager(connector: FakeConnector, url: str = "ws://localhost:8000", actions=None, processor=None):
    registered = actions if actions is not None else []
    return SocketManager(
        "Test Game",
        url,
        process_command=processor or Recorder(),
        registered_actions=lambda: list(registered),
        connect=connector,
        **FAST_SOCKET_OPTIONS,
    )


async def stop(manager: SocketManager, runner: asyncio.Task) -> None:
    await manager.close_normally()
    await asyncio.wait_for(runner, 2.0)


class TestConnection:
    @pytest.mark.asyncio
    async def test_invalid_url_never_connects(self, connector):
        manager = make_manager(connector, url="http://localhost:8000")
        runner = asyncio.create_task(manager.start())

        await wait_until(lambda: manager.close_info is not None)
        await asyncio.sleep(0.05)
        assert manager.close_info.reason is CloseReason.INVALID_URL
        assert manager.close_message == "Invalid URL: http://localhost:8000"
        assert connector.attempts == []

        manager.url = "ws://localhost:8000"
        await wait_until(lambda: manager.connected)
        assert [url for url, _ in connector.attempts] == ["ws://localhost:8000"]
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_normal_close_while_url_is_invalid_stops(self, connector):
        manager = make_manager(connector, url="wss://secure.example")
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.close_info is not None)
        await stop(manager, runner)
        assert connector.attempts == []

    @pytest.mark.asyncio
    async def test_transport_options(self, connector):
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)
        _, options = connector.attempts[0]
        assert options == {"ping_interval": 5.0, "max_size": None}
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_startup_then_resend_registered_actions(self):
        socket = FakeWebSocket()
        actions = [ActionDescription(name="jump", description="Jump")]
        manager = make_manager(FakeConnector(socket), actions=actions)
        runner = asyncio.create_task(manager.start())

        await wait_until(lambda: len(socket.sent) == 2)
        startup, register = socket.sent_messages
        assert startup == {"command": "startup", "game": "Test Game"}
        assert register["command"] == Command.ACTIONS_REGISTER
        assert register["data"]["actions"] == [{"name": "jump", "description": "Jump"}]
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_no_registration_without_actions(self):
        socket = FakeWebSocket()
        manager = make_manager(FakeConnector(socket))
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)
        await asyncio.sleep(0.02)
        assert [m["command"] for m in socket.sent_messages] == ["startup"]
        await stop(manager, runner)


class TestPipeline:
    @pytest.mark.asyncio
    async def test_outgoing_messages_are_fifo_and_stamped(self):
        socket = FakeWebSocket()
        manager = make_manager(FakeConnector(socket))
        for i in range(5):
            manager.send(build_context(f"message {i}", False))
        runner = asyncio.create_task(manager.start())

        await wait_until(lambda: len(socket.sent) == 6)
        contexts = socket.sent_messages[1:]
        assert [m["data"]["message"] for m in contexts] == [f"message {i}" for i in range(5)]
        assert all(m["game"] == "Test Game" for m in contexts)
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_bad_frames_are_dropped_and_loop_continues(self):
        socket = FakeWebSocket()
        recorder = Recorder()
        manager = make_manager(FakeConnector(socket), processor=recorder)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)

        socket.feed("this is not json")
        socket.feed(b'{"command": "action"}')
        socket.feed('{"command": "boom"}')
        socket.feed('  {"command": "action", "data": {"id": "1", "name": "x"}}\n')
        await wait_until(lambda: len(socket.sent) == 2)

        assert socket.sent_messages[1] == {
            "command": "action/result",
            "game": "Test Game",
            "data": {"id": "1", "success": True, "message": "ok"},
        }
        assert [m.command for m in recorder.received] == ["boom", "action"]
        assert manager.connected
        await stop(manager, runner)


class TestReconnect:
    @pytest.mark.asyncio
    async def test_transport_failure_reconnects_once_and_resends_actions(self):
        first, second = FakeWebSocket(), FakeWebSocket()
        connector = FakeConnector(first, second)
        actions: list[ActionDescription] = []
        manager = make_manager(connector, actions=actions)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)

        actions.append(ActionDescription(name="jump", description="Jump"))
        first.fail()
        await wait_until(lambda: len(connector.sockets) == 2 and manager.connected)
        assert first.closed[0] == 1011

        await wait_until(lambda: len(second.sent) == 2)
        startup, register = second.sent_messages
        assert startup["command"] == "startup"
        assert register["data"]["actions"][0]["name"] == "jump"

        await asyncio.sleep(0.1)
        assert len(connector.attempts) == 2
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_reconnect_waits_for_the_fixed_delay(self):
        first = FakeWebSocket()
        connector = FakeConnector(first)
        manager = make_manager(connector)
        manager._reconnect_delay = 0.2
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)

        failed_at = asyncio.get_running_loop().time()
        first.fail()
        await wait_until(lambda: len(connector.attempts) == 2 and manager.connected)
        assert connector.attempt_times[1] - failed_at >= 0.19
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_server_closing_is_treated_as_error(self):
        first = FakeWebSocket()
        connector = FakeConnector(first)
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)

        first.end()
        await wait_until(lambda: manager.is_errored or len(connector.attempts) == 2)
        await wait_until(lambda: len(connector.attempts) == 2 and manager.connected)
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_connect_failure_backs_off_and_retries(self):
        connector = FakeConnector(OSError("connection refused"), FakeWebSocket())
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)
        assert len(connector.attempts) == 2
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_messages_queued_while_disconnected_are_sent_after_reconnect(self):
        first, second = FakeWebSocket(), FakeWebSocket()
        connector = FakeConnector(first, second)
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)

        first.fail()
        await wait_until(lambda: manager.is_errored or len(connector.sockets) == 2)
        manager.send(build_context("while offline", False))
        await wait_until(lambda: any(m["command"] == "context" for m in second.sent_messages))
        await stop(manager, runner)


class TestClose:
    @pytest.mark.asyncio
    async def test_close_normally_is_terminal(self):
        socket = FakeWebSocket()
        connector = FakeConnector(socket)
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)

        await stop(manager, runner)
        assert socket.closed == (1000, "Shutting down!")
        assert manager.close_info.reason is CloseReason.NORMAL
        assert not manager.connected
        assert len(connector.attempts) == 1

    @pytest.mark.asyncio
    async def test_reconnect_cycles_the_connection(self):
        first, second = FakeWebSocket(), FakeWebSocket()
        connector = FakeConnector(first, second)
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)

        await manager.reconnect("Rotating")
        assert first.closed == (1012, "Rotating")
        await wait_until(lambda: len(connector.sockets) == 2 and manager.connected)
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        socket = FakeWebSocket()
        connector = FakeConnector(socket)
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.connected)

        cause = RuntimeError("first")
        await manager.close_with_error("First failure", cause)
        await manager.close_with_error("Second failure")
        assert manager.close_info.message == "First failure"
        assert manager.close_info.cause is cause
        assert socket.closed == (1011, "First failure")
        await wait_until(lambda: len(connector.sockets) == 2 and manager.connected)
        await stop(manager, runner)

    @pytest.mark.asyncio
    async def test_close_before_start_of_backoff_stops(self):
        connector = FakeConnector(*[OSError("refused") for _ in range(100)])
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: manager.is_errored)
        await stop(manager, runner)
        assert not manager.connected


class SlowHandshakeSocket(FakeWebSocket):
    """Suspends on the startup frame so a close can land mid-handshake."""

    async def send(self, frame: str) -> None:
        if not self.sent:
            self.sent.append(frame)
            await asyncio.sleep(0.05)
            return
        await super().send(frame)


class TestCloseDuringHandshake:
    @pytest.mark.asyncio
    async def test_close_normally_during_handshake_terminates(self):
        socket = SlowHandshakeSocket()
        connector = FakeConnector(socket)
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: len(socket.sent) == 1)

        await stop(manager, runner)
        assert socket.closed == (1000, "Shutting down!")
        assert len(connector.attempts) == 1

    @pytest.mark.asyncio
    async def test_reconnect_during_handshake_opens_a_new_session(self):
        first, second = SlowHandshakeSocket(), FakeWebSocket()
        connector = FakeConnector(first, second)
        manager = make_manager(connector)
        runner = asyncio.create_task(manager.start())
        await wait_until(lambda: len(first.sent) == 1)

        await manager.reconnect()
        assert first.closed == (1012, "Reconnecting!")
        await wait_until(lambda: len(connector.sockets) == 2 and manager.connected)
        manager.send(build_context("after reconnect", False))
        await wait_until(lambda: any(m["command"] == "context" for m in second.sent_messages))
        await stop(manager, runner)
