"""Import progress frames and their ``data: {...}\\n\\n`` wire encoding.

The frame set is closed: one ``init`` opens a batch, any number of
``progress`` frames follow, and exactly one ``complete`` or ``error`` closes
it. Server and client share these models so the shapes cannot drift.
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

FRAME_PREFIX = "data: "
FRAME_SEPARATOR = b"\n\n"


class RowFailure(BaseModel):
    row: int
    error: str


class RowWarning(BaseModel):
    row: int
    warning: str


class InitFrame(BaseModel):
    type: Literal["init"] = "init"
    total: int


class ProgressFrame(BaseModel):
    type: Literal["progress"] = "progress"
    current: int
    total: int
    successCount: int
    errorCount: int


class CompleteFrame(BaseModel):
    type: Literal["complete"] = "complete"
    successCount: int
    errorCount: int
    errors: List[RowFailure] = Field(default_factory=list)
    warnings: List[RowWarning] = Field(default_factory=list)


class ErrorFrame(BaseModel):
    type: Literal["error"] = "error"
    error: str


ImportProgressEvent = Annotated[
    Union[InitFrame, ProgressFrame, CompleteFrame, ErrorFrame],
    Field(discriminator="type"),
]

TerminalFrame = Union[CompleteFrame, ErrorFrame]

_event_adapter: TypeAdapter = TypeAdapter(ImportProgressEvent)


def is_terminal(event: BaseModel) -> bool:
    return isinstance(event, (CompleteFrame, ErrorFrame))


def encode_frame(event: BaseModel) -> bytes:
    return f"{FRAME_PREFIX}{event.model_dump_json()}\n\n".encode("utf-8")


def parse_frame_payload(payload: str | bytes):
    """Validate one JSON payload into its frame model."""
    return _event_adapter.validate_json(payload)


class FrameDecodeError(ValueError):
    pass


class FrameDecoder:
    """Incremental reader for a frame stream.

    Bytes are buffered until a blank-line boundary; each complete block is
    parsed independently and a trailing partial block waits for more bytes.
    """

    def __init__(self) -> None:
        self._buffer = b""

    @property
    def pending(self) -> bytes:
        return self._buffer

    def feed(self, chunk: bytes) -> list:
        self._buffer += chunk.replace(b"\r\n", b"\n")
        events = []
        while True:
            boundary = self._buffer.find(FRAME_SEPARATOR)
            if boundary < 0:
                break
            block = self._buffer[:boundary]
            self._buffer = self._buffer[boundary + len(FRAME_SEPARATOR):]
            event = self._parse_block(block)
            if event is not None:
                events.append(event)
        return events

    def close(self) -> None:
        if self._buffer.strip():
            raise FrameDecodeError("Stream ended inside an incomplete frame.")

    @staticmethod
    def _parse_block(block: bytes):
        data_lines = []
        for line in block.decode("utf-8").split("\n"):
            if line.startswith("data:"):
                data_lines.append(line[len("data:"):].lstrip(" "))
        if not data_lines:
            return None
        try:
            return parse_frame_payload("\n".join(data_lines))
        except ValidationError as exc:
            raise FrameDecodeError(f"Invalid frame payload: {exc}") from exc


def decode_stream(payload: bytes) -> list:
    """Decode a complete captured stream body."""
    decoder = FrameDecoder()
    events = decoder.feed(payload)
    decoder.close()
    return events
