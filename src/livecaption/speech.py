"""Streaming recognition backends (Google Cloud Speech and Amazon Transcribe)."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, AsyncIterator, Dict, Protocol

import boto3
from amazon_transcribe.client import TranscribeStreamingClient
from google.api_core import exceptions as api_exceptions
from google.api_core.client_options import ClientOptions
from google.auth import exceptions as auth_exceptions
from google.cloud import speech

from .config import Settings
from .errors import ConnectError, RecognitionError, StreamSendError
from .messages import (
    AudioContent,
    AudioEncoding,
    RecognitionRequest,
    RecognitionResponse,
    StreamingConfig,
)

logger = logging.getLogger(__name__)


class RecognitionStream(Protocol):
    """Duplex recognition stream: requests go in, responses come out.

    The first request must be a :class:`StreamingConfig`; every later one an
    :class:`AudioContent`. ``responses`` ends cleanly when the service closes
    the stream and raises :class:`RecognitionError` on any other failure.
    """

    async def send(self, request: RecognitionRequest) -> None: ...

    def responses(self) -> AsyncIterator[RecognitionResponse]: ...

    async def close(self) -> None: ...


class _OrderedRequests:
    """Tracks the config-first rule shared by both backends."""

    def __init__(self) -> None:
        self.configured = False
        self.closed = False

    def check(self, request: RecognitionRequest) -> None:
        if self.closed:
            raise StreamSendError("Stream is closed")
        if isinstance(request, StreamingConfig):
            if self.configured:
                raise StreamSendError("Streaming config was already sent")
        elif not self.configured:
            raise StreamSendError("Audio sent before the streaming config")


# ---------------------------------------------------------------------------
# Google Cloud Speech-to-Text v1
# ---------------------------------------------------------------------------

_GOOGLE_ENCODINGS = {
    AudioEncoding.LINEAR16: speech.RecognitionConfig.AudioEncoding.LINEAR16,
}


class GoogleSpeechStream:
    """``StreamingRecognize`` call fed from a bounded request queue.

    A full queue means the service is not keeping up with capture; the send
    fails and the frame is dropped.
    """

    def __init__(self, client: Any, *, max_pending: int = 32) -> None:
        self._client = client
        self._requests: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_pending)
        self._order = _OrderedRequests()
        self._call: Any = None

    @classmethod
    async def connect(cls, settings: Settings) -> "GoogleSpeechStream":
        options = ClientOptions(api_endpoint=settings.endpoint, scopes=list(settings.scopes))
        try:
            client = speech.SpeechAsyncClient(client_options=options)
        except auth_exceptions.GoogleAuthError as exc:
            raise ConnectError(f"Could not authenticate with {settings.endpoint}: {exc}") from exc
        stream = cls(client, max_pending=settings.send_queue_frames)
        await stream.open()
        return stream

    async def open(self) -> None:
        try:
            self._call = await self._client.streaming_recognize(requests=self._request_iterator())
        except (api_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            raise ConnectError(f"Could not open the recognition stream: {exc}") from exc

    async def _request_iterator(self) -> AsyncIterator[Any]:
        while True:
            request = await self._requests.get()
            if request is None:
                return
            yield request

    @staticmethod
    def _to_proto(request: RecognitionRequest) -> Any:
        if isinstance(request, StreamingConfig):
            config = speech.RecognitionConfig(
                encoding=_GOOGLE_ENCODINGS[request.encoding],
                sample_rate_hertz=request.sample_rate_hertz,
                language_code=request.language_code,
            )
            return speech.StreamingRecognizeRequest(
                streaming_config=speech.StreamingRecognitionConfig(config=config)
            )
        return speech.StreamingRecognizeRequest(audio_content=request.audio)

    async def send(self, request: RecognitionRequest) -> None:
        self._order.check(request)
        try:
            self._requests.put_nowait(self._to_proto(request))
        except asyncio.QueueFull as exc:
            raise StreamSendError(
                f"{self._requests.maxsize} requests already pending; frame dropped"
            ) from exc
        if isinstance(request, StreamingConfig):
            self._order.configured = True

    async def responses(self) -> AsyncIterator[RecognitionResponse]:
        if self._call is None:
            raise RecognitionError("Stream is not open")
        try:
            async for response in self._call:
                error = None
                if response.error.code:
                    error = f"code {response.error.code}: {response.error.message}"
                yield RecognitionResponse(results=list(response.results), error=error)
        except (api_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            raise RecognitionError(f"Cannot stream results: {exc}") from exc
        finally:
            self._order.closed = True

    async def close(self) -> None:
        self._order.closed = True
        try:
            # Half-close the request side.
            self._requests.put_nowait(None)
        except asyncio.QueueFull:
            pass
        if self._call is not None:
            self._call.cancel()


# ---------------------------------------------------------------------------
# Amazon Transcribe streaming
# ---------------------------------------------------------------------------

_TRANSCRIBE_ENCODINGS = {AudioEncoding.LINEAR16: "pcm"}


def resolve_aws_region(settings: Settings) -> str:
    return (
        settings.aws_region
        or os.getenv("AWS_REGION")
        or os.getenv("AWS_DEFAULT_REGION")
        or boto3.session.Session().region_name
        or "us-west-2"
    )


def _describe_transcribe_result(result: Any) -> Dict[str, Any]:
    return {
        "result_id": getattr(result, "result_id", None),
        "is_partial": getattr(result, "is_partial", None),
        "start_time": getattr(result, "start_time", None),
        "end_time": getattr(result, "end_time", None),
        "alternatives": [a.transcript for a in getattr(result, "alternatives", None) or []],
    }


class TranscribeSpeechStream:
    """Amazon Transcribe stream; the config request starts the transcription."""

    def __init__(self, client: Any) -> None:
        self._client = client
        self._order = _OrderedRequests()
        self._stream: Any = None

    @classmethod
    async def connect(cls, settings: Settings) -> "TranscribeSpeechStream":
        region = resolve_aws_region(settings)
        try:
            client = TranscribeStreamingClient(region=region)
        except Exception as exc:
            raise ConnectError(f"Could not create a Transcribe client in {region}: {exc}") from exc
        logger.info("Using Amazon Transcribe in %s", region)
        return cls(client)

    async def send(self, request: RecognitionRequest) -> None:
        self._order.check(request)
        if isinstance(request, StreamingConfig):
            try:
                self._stream = await self._client.start_stream_transcription(
                    language_code=request.language_code,
                    media_sample_rate_hz=request.sample_rate_hertz,
                    media_encoding=_TRANSCRIBE_ENCODINGS[request.encoding],
                )
            except Exception as exc:
                raise StreamSendError(f"Could not start transcription: {exc}") from exc
            self._order.configured = True
            return
        try:
            await self._stream.input_stream.send_audio_event(audio_chunk=request.audio)
        except Exception as exc:
            raise StreamSendError(f"Could not send audio: {exc}") from exc

    async def responses(self) -> AsyncIterator[RecognitionResponse]:
        if self._stream is None:
            raise RecognitionError("Transcription was not started")
        try:
            async for event in self._stream.output_stream:
                transcript = getattr(event, "transcript", None)
                if transcript is None:
                    continue
                results = [_describe_transcribe_result(r) for r in transcript.results]
                yield RecognitionResponse(results=results)
        except Exception as exc:
            # The SDK reports service errors as exceptions raised from the output stream.
            raise RecognitionError(f"Cannot stream results: {exc}") from exc
        finally:
            self._order.closed = True

    async def close(self) -> None:
        if self._stream is None or self._order.closed:
            self._order.closed = True
            return
        self._order.closed = True
        try:
            await self._stream.input_stream.end_stream()
        except Exception as exc:
            logger.debug("Ending the Transcribe input stream failed: %s", exc)


async def connect(settings: Settings) -> RecognitionStream:
    """Open a recognition stream for ``settings.backend``."""
    if settings.backend == "transcribe":
        return await TranscribeSpeechStream.connect(settings)
    return await GoogleSpeechStream.connect(settings)


__all__ = [
    "GoogleSpeechStream",
    "RecognitionStream",
    "TranscribeSpeechStream",
    "connect",
    "resolve_aws_region",
]
