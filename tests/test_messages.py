"""Unit tests for the request/response types."""

import numpy as np

from livecaption.messages import (
    FRAME_SAMPLES,
    AudioContent,
    AudioEncoding,
    StreamingConfig,
    encode_frame,
    render_result,
)


class TestStreamingConfig:
    def test_defaults(self):
        """Default config is LINEAR16 at 16 kHz, en-US."""
        config = StreamingConfig()

        assert config.encoding is AudioEncoding.LINEAR16
        assert config.sample_rate_hertz == 16000
        assert config.language_code == "en-US"

    def test_frame_size(self):
        assert FRAME_SAMPLES == 8196


class TestEncodeFrame:
    def test_little_endian_int16(self):
        """Samples are written as signed 16-bit little-endian."""
        samples = np.array([[1], [-2], [256]], dtype=np.int16)

        assert encode_frame(samples) == b"\x01\x00\xfe\xff\x00\x01"

    def test_big_endian_input_is_converted(self):
        samples = np.array([1, 2], dtype=">i2")

        assert encode_frame(samples) == b"\x01\x00\x02\x00"

    def test_full_frame_length(self):
        samples = np.zeros((FRAME_SAMPLES, 1), dtype=np.int16)

        assert len(encode_frame(samples)) == FRAME_SAMPLES * 2


class TestRendering:
    def test_multiline_dump_collapses_to_one_line(self):
        class Result:
            def __str__(self):
                return 'alternatives {\n  transcript: "hello"\n}\nis_final: true\n'

        assert render_result(Result()) == 'alternatives { transcript: "hello" } is_final: true'

    def test_audio_content_repr_hides_payload(self):
        assert repr(AudioContent(b"\x00" * 10)) == "AudioContent(<10 bytes>)"
