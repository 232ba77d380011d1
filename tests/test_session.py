"""Tests for the session controller and the top-level run."""

import asyncio
import os
import signal

import pytest

from fakes import FakeSource, FakeStream, result_response
from livecaption.capture import CaptureLoop
from livecaption.config import Settings
from livecaption.errors import (
    AudioDeviceError,
    ConfigureError,
    ConnectError,
    RecognitionError,
    SessionDeadlineExceeded,
    StreamSendError,
)
from livecaption.messages import AudioContent, AudioEncoding, RecognitionResponse, StreamingConfig
from livecaption.session import SessionController, run_session
from livecaption.shutdown import StopSignal


def connector_for(stream):
    async def connect(_settings):
        return stream

    return connect


def make_controller(settings, stream, out, source=None):
    source = source or FakeSource()
    capture = CaptureLoop(lambda: source, out=out)
    return SessionController(settings, capture=capture, connector=connector_for(stream), out=out)


def result_lines(out):
    # Heartbeat dots may share a line with the dump that follows them.
    lines = out.getvalue().split("\n")
    return [line[line.index("Result: "):] for line in lines if "Result: " in line]


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_config_is_first_message(self, settings, out):
        """The streaming config precedes every audio request."""
        stream = FakeStream(hold_open=True)
        stream._on_audio = lambda attempt: attempt == 3 and stream.finish()
        controller = make_controller(settings, stream, out)

        await asyncio.wait_for(controller.run(StopSignal()), timeout=2)

        assert isinstance(stream.sent[0], StreamingConfig)
        assert stream.sent[0] == StreamingConfig(
            encoding=AudioEncoding.LINEAR16, sample_rate_hertz=16000, language_code="en-US"
        )
        assert len(stream.sent) >= 3
        assert all(isinstance(r, AudioContent) for r in stream.sent[1:])
        assert stream.closed

    @pytest.mark.asyncio
    async def test_config_send_failure_is_fatal(self, settings, out):
        stream = FakeStream(config_error=StreamSendError("stream reset"))
        source = FakeSource()
        controller = make_controller(settings, stream, out, source)

        with pytest.raises(ConfigureError):
            await controller.run(StopSignal())

        assert source.reads == 0
        assert stream.closed

    @pytest.mark.asyncio
    async def test_connect_failure_is_fatal(self, settings, out):
        async def refuse(_settings):
            raise ConnectError("permission denied")

        capture = CaptureLoop(FakeSource, out=out)
        controller = SessionController(settings, capture=capture, connector=refuse, out=out)

        with pytest.raises(ConnectError):
            await controller.run(StopSignal())


class TestResultLoop:
    @pytest.mark.asyncio
    async def test_prints_each_result_until_clean_close(self, settings, out):
        stream = FakeStream([result_response("hello"), result_response("world")])
        controller = make_controller(settings, stream, out)

        await asyncio.wait_for(controller.run(StopSignal()), timeout=2)

        assert controller.results_printed == 2
        assert result_lines(out) == [
            "Result: {'alternatives': ['hello']}",
            "Result: {'alternatives': ['world']}",
        ]

    @pytest.mark.asyncio
    async def test_receive_error_after_results(self, settings, out):
        """An error on the third receive leaves exactly two dumps."""
        stream = FakeStream(
            [result_response("one"), result_response("two"), result_response("three")],
            fail_at=2,
        )
        controller = make_controller(settings, stream, out)

        with pytest.raises(RecognitionError, match="Cannot stream results"):
            await asyncio.wait_for(controller.run(StopSignal()), timeout=2)

        assert len(result_lines(out)) == 2
        assert stream.closed

    @pytest.mark.asyncio
    async def test_service_reported_error(self, settings, out):
        stream = FakeStream(
            [result_response("ok"), RecognitionResponse(error="code 11: audio timeout")]
        )
        controller = make_controller(settings, stream, out)

        with pytest.raises(RecognitionError, match="Could not recognize"):
            await asyncio.wait_for(controller.run(StopSignal()), timeout=2)

        assert len(result_lines(out)) == 1

    @pytest.mark.asyncio
    async def test_empty_response_prints_nothing(self, settings, out):
        stream = FakeStream([RecognitionResponse()])
        controller = make_controller(settings, stream, out)

        await asyncio.wait_for(controller.run(StopSignal()), timeout=2)

        assert result_lines(out) == []


class TestDeadline:
    @pytest.mark.asyncio
    async def test_deadline_ends_session(self, out):
        settings = Settings(session_seconds=0.1, frame_samples=8)
        stream = FakeStream(hold_open=True)
        source = FakeSource()
        controller = make_controller(settings, stream, out, source)

        with pytest.raises(SessionDeadlineExceeded):
            await asyncio.wait_for(controller.run(StopSignal()), timeout=2)

        assert stream.closed
        assert source.closed


class TestCaptureFailure:
    @pytest.mark.asyncio
    async def test_device_failure_ends_session(self, settings, out):
        stream = FakeStream(hold_open=True)
        source = FakeSource(start_error=AudioDeviceError("no microphone"))
        controller = make_controller(settings, stream, out, source)

        with pytest.raises(AudioDeviceError):
            await asyncio.wait_for(controller.run(StopSignal()), timeout=2)

        assert stream.closed


class TestRunSession:
    @pytest.mark.asyncio
    async def test_clean_end_of_stream_exits_zero(self, settings, out):
        stream = FakeStream([result_response("hi")])

        code = await asyncio.wait_for(
            run_session(
                settings,
                connector=connector_for(stream),
                source_factory=FakeSource,
                signals=(),
                out=out,
            ),
            timeout=2,
        )

        assert code == 0
        assert result_lines(out) == ["Result: {'alternatives': ['hi']}"]

    @pytest.mark.asyncio
    async def test_fatal_error_propagates(self, settings, out):
        stream = FakeStream(fail_at=0)

        with pytest.raises(RecognitionError):
            await asyncio.wait_for(
                run_session(
                    settings,
                    connector=connector_for(stream),
                    source_factory=FakeSource,
                    signals=(),
                    out=out,
                ),
                timeout=2,
            )

    @pytest.mark.asyncio
    @pytest.mark.skipif(not hasattr(signal, "SIGUSR1"), reason="POSIX signals only")
    async def test_signal_stops_microphone_and_exits_zero(self, settings, out):
        """One signal: one stop, the device is stopped, exit status 0."""
        source = FakeSource()
        stream = FakeStream(hold_open=True)
        stream._on_audio = lambda attempt: attempt == 2 and os.kill(os.getpid(), signal.SIGUSR1)

        code = await asyncio.wait_for(
            run_session(
                settings,
                connector=connector_for(stream),
                source_factory=lambda: source,
                signals=(signal.SIGUSR1,),
                out=out,
            ),
            timeout=2,
        )

        assert code == 0
        assert source.stopped
        assert source.closed
        assert stream.closed
        assert result_lines(out) == []
