"""Tests for the upstream realtime connector."""

import asyncio

import pytest

from models.session_models import RelaySession, UpstreamState
from services.realtime.errors import UpstreamUnavailable
from services.realtime.upstream_connector import UpstreamConnector
from tests.conftest import FakeClientSocket, FakeConnect, wait_until
from utils.settings import RelaySettings


def make_session():
    return RelaySession(session_key="brk-1", client_channel=FakeClientSocket())


async def start(connector, session):
    task = asyncio.create_task(connector.initialize(session))
    session.track(task)
    return task


async def stop(connector, session, task):
    await connector.close(session)
    await asyncio.wait_for(task, timeout=1)
    pending = list(session.tasks)
    for leftover in pending:
        leftover.cancel()
    await asyncio.gather(*pending, return_exceptions=True)


class TestInitialize:
    @pytest.mark.asyncio
    async def test_without_credential_no_connection_is_attempted(self, tmp_path):
        connect = FakeConnect()
        connector = UpstreamConnector(RelaySettings(openai_api_key=None, database_dir=tmp_path), connect=connect)
        session = make_session()

        await connector.initialize(session)

        assert session.fallback_mode is True
        assert connect.calls == []

    @pytest.mark.asyncio
    async def test_connects_with_bearer_and_sends_configuration(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect, instructions="persona")
        session = make_session()
        task = await start(connector, session)

        await wait_until(lambda: connect.upstream.sent)

        call = connect.calls[0]
        assert call["url"] == settings.realtime_endpoint
        assert call["additional_headers"]["Authorization"] == "Bearer sk-test"
        assert call["additional_headers"]["OpenAI-Beta"] == "realtime=v1"
        assert connect.upstream.sent[0]["type"] == "session.update"
        assert connect.upstream.sent[0]["session"]["instructions"] == "persona"
        assert session.upstream_channel is connect.upstream
        assert session.upstream_state == UpstreamState.CONNECTING
        await stop(connector, session, task)

    @pytest.mark.asyncio
    async def test_session_updated_marks_ready_and_notifies_client(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        task = await start(connector, session)

        connect.upstream.feed({"type": "session.created", "session": {"id": "sess_1"}})
        connect.upstream.feed({"type": "session.updated"})
        await wait_until(lambda: session.upstream_state == UpstreamState.READY)
        await wait_until(lambda: len(session.client_channel.sent) == 2)

        assert session.client_channel.types() == ["ai_connected", "ai_session_ready"]
        assert session.upstream_ready is True
        await stop(connector, session, task)

    @pytest.mark.asyncio
    async def test_audio_deltas_keep_arrival_order(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        task = await start(connector, session)

        for chunk in ("AA", "BB", "CC"):
            connect.upstream.feed({"type": "response.audio.delta", "delta": chunk})
        connect.upstream.feed({"type": "response.audio.done"})
        await wait_until(lambda: len(session.client_channel.sent) == 4)

        deltas = session.client_channel.of_type("ai_audio_delta")
        assert [event["audioData"] for event in deltas] == ["AA", "BB", "CC"]
        assert session.client_channel.types()[-1] == "ai_audio_done"
        await stop(connector, session, task)

    @pytest.mark.asyncio
    async def test_upstream_error_event_switches_to_fallback(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        task = await start(connector, session)

        connect.upstream.feed({"type": "session.updated"})
        connect.upstream.feed({"type": "error", "error": {"message": "bad request"}})
        await wait_until(lambda: session.fallback_mode)
        await wait_until(lambda: session.client_channel.of_type("ai_error"))

        assert session.client_channel.of_type("ai_error")[0]["message"] == "bad request"
        assert session.upstream_ready is False
        await stop(connector, session, task)

    @pytest.mark.asyncio
    async def test_malformed_upstream_frame_is_skipped(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        task = await start(connector, session)

        connect.upstream.feed_raw("{not json")
        connect.upstream.feed({"type": "input_audio_buffer.speech_started"})
        await wait_until(lambda: session.client_channel.sent)

        assert session.client_channel.types() == ["speech_started"]
        await stop(connector, session, task)

    @pytest.mark.asyncio
    async def test_malformed_events_do_not_stop_the_reader(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        task = await start(connector, session)

        connect.upstream.feed({"type": "session.created", "session": "sess_1"})
        connect.upstream.feed({"type": "response.done", "response": ["oops"]})
        connect.upstream.feed({"type": ["not", "a", "string"]})
        connect.upstream.feed({"type": "input_audio_buffer.speech_stopped"})
        await wait_until(lambda: session.client_channel.of_type("speech_stopped"))

        assert task.done() is False
        assert session.upstream_channel is connect.upstream
        assert session.client_channel.types() == ["ai_connected", "speech_stopped"]
        await stop(connector, session, task)
        assert connect.upstream.closed is True

    @pytest.mark.asyncio
    async def test_handler_failure_is_logged_and_reading_continues(self, settings, monkeypatch):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        calls = []
        original = connector.handle_event

        async def flaky(session, event):
            calls.append(event["type"])
            if len(calls) == 1:
                raise AttributeError("broken event")
            await original(session, event)

        monkeypatch.setattr(connector, "handle_event", flaky)
        task = await start(connector, session)

        connect.upstream.feed({"type": "session.updated"})
        connect.upstream.feed({"type": "session.updated"})
        await wait_until(lambda: session.upstream_state == UpstreamState.READY)

        assert calls == ["session.updated", "session.updated"]
        assert task.done() is False
        await stop(connector, session, task)

    @pytest.mark.asyncio
    async def test_transport_error_while_reading_switches_to_fallback(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        task = await start(connector, session)

        connect.upstream.feed({"type": "session.updated"})
        await wait_until(lambda: session.upstream_state == UpstreamState.READY)
        connect.upstream.fail(OSError("connection reset"))
        await asyncio.wait_for(task, timeout=1)

        assert session.upstream_state == UpstreamState.ERRORED
        assert session.fallback_mode is True
        assert session.upstream_channel is None
        assert connect.upstream.closed is True
        await stop(connector, session, task)

    @pytest.mark.asyncio
    async def test_upstream_close_clears_channel_without_fallback(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        task = await start(connector, session)

        connect.upstream.feed({"type": "session.updated"})
        await wait_until(lambda: session.upstream_state == UpstreamState.READY)
        await connect.upstream.close()
        await asyncio.wait_for(task, timeout=1)

        assert session.upstream_channel is None
        assert session.upstream_state == UpstreamState.CLOSED
        assert session.fallback_mode is False
        assert connect.upstream.closed is True
        await stop(connector, session, task)

    @pytest.mark.asyncio
    async def test_connect_failure_switches_to_fallback(self, settings):
        connector = UpstreamConnector(settings, connect=FakeConnect(error=OSError("refused")))
        session = make_session()

        await connector.initialize(session)

        assert session.fallback_mode is True
        assert session.upstream_state == UpstreamState.ERRORED
        assert session.client_channel.sent == []

    @pytest.mark.asyncio
    async def test_missing_configuration_ack_switches_to_fallback(self, settings):
        settings.upstream_ready_timeout = 0.05
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        task = await start(connector, session)

        await wait_until(lambda: session.fallback_mode)
        await asyncio.wait_for(task, timeout=1)

        assert connect.upstream.closed is True
        assert session.upstream_channel is None
        assert session.upstream_state == UpstreamState.ERRORED

    @pytest.mark.asyncio
    async def test_session_closed_during_connect_discards_channel(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        session.closed = True

        await connector.initialize(session)

        assert connect.upstream.closed is True
        assert session.upstream_channel is None


class TestSendTurn:
    @pytest.mark.asyncio
    async def test_refuses_when_not_ready(self, settings):
        connector = UpstreamConnector(settings, connect=FakeConnect())
        with pytest.raises(UpstreamUnavailable):
            await connector.send_turn(make_session(), [{"type": "response.create"}])

    @pytest.mark.asyncio
    async def test_closed_channel_fails_over(self, settings):
        connect = FakeConnect()
        connector = UpstreamConnector(settings, connect=connect)
        session = make_session()
        session.upstream_channel = connect.upstream
        session.upstream_state = UpstreamState.READY
        await connect.upstream.close()

        with pytest.raises(UpstreamUnavailable):
            await connector.send_turn(session, [{"type": "response.create"}])

        assert session.fallback_mode is True
        assert session.upstream_channel is None
