"""
Tests for decoding individual grading stream lines.
"""
import json

import pytest

from app.features.grading.services.frame_decoder import FrameDecodeError, FrameDecoder


@pytest.fixture
def decoder():
    return FrameDecoder()


class TestFrameDecoder:

    def test_decodes_text_frame(self, decoder, make_frame):
        frame = decoder.decode(make_frame({"overall_score": 82, "summary": "Good"}))
        assert frame.result.overall_score == 82
        assert frame.result.summary == "Good"

    def test_decodes_bytes_frame(self, decoder, make_frame):
        frame = decoder.decode(make_frame({"grade_letter": "A+"}).encode("utf-8"))
        assert frame.result.grade_letter == "A+"

    def test_accepts_empty_result(self, decoder):
        frame = decoder.decode('{"result": {}}')
        assert frame.result.is_complete() is False

    def test_ignores_unknown_fields(self, decoder, make_frame):
        frame = decoder.decode(make_frame({"summary": "ok", "confidence": 0.9}))
        assert frame.result.summary == "ok"

    def test_invalid_json(self, decoder):
        with pytest.raises(FrameDecodeError, match="not valid JSON"):
            decoder.decode('{"result": {"summary": "cut of')

    def test_invalid_utf8(self, decoder):
        with pytest.raises(FrameDecodeError):
            decoder.decode(b"\xff\xfe{}")

    @pytest.mark.parametrize("payload", [[], {"error": "boom"}, {"result": "text"}, {"result": None}])
    def test_missing_result_object(self, decoder, payload):
        with pytest.raises(FrameDecodeError, match="no result object"):
            decoder.decode(json.dumps(payload))

    def test_result_with_wrong_types(self, decoder, make_frame):
        with pytest.raises(FrameDecodeError, match="not a grading record"):
            decoder.decode(make_frame({"overall_score": "eighty"}))
