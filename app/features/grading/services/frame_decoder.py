import json
from typing import Union

from pydantic import ValidationError

from app.features.grading.schemas.grading import Frame


class FrameDecodeError(ValueError):
    """A grading stream line could not be read as a frame."""


class FrameDecoder:
    """
    Decodes one line of the grading stream.

    A line is a JSON object `{"result": {...}}` whose result is the whole
    grading record so far. Callers are expected to log and skip lines that
    raise FrameDecodeError rather than abort the stream.
    """

    encoding = "utf-8"

    def decode(self, line: Union[bytes, str]) -> Frame:
        if isinstance(line, bytes):
            try:
                line = line.decode(self.encoding)
            except UnicodeDecodeError as e:
                raise FrameDecodeError(f"Frame is not valid {self.encoding}") from e

        try:
            payload = json.loads(line)
        except json.JSONDecodeError as e:
            raise FrameDecodeError(f"Frame is not valid JSON: {e.msg}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("result"), dict):
            raise FrameDecodeError("Frame has no result object")

        try:
            return Frame.model_validate(payload)
        except ValidationError as e:
            raise FrameDecodeError(f"Frame result is not a grading record: {e.error_count()} error(s)") from e
