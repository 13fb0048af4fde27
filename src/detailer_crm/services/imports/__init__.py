"""Customer spreadsheet import pipeline."""

from .orchestrator import ImportOrchestrator, ImportResult, ImportState
from .progress import (
    CompleteFrame,
    ErrorFrame,
    FrameDecoder,
    ImportProgressEvent,
    InitFrame,
    ProgressFrame,
    decode_stream,
    encode_frame,
)
from .readers import SpreadsheetTable, read_table
from .row_parser import TEMPLATE_COLUMNS, ColumnMap, ParsedRow, parse_row
from .upsert import UpsertOutcome, upsert_row

__all__ = [
    "ImportOrchestrator",
    "ImportResult",
    "ImportState",
    "ImportProgressEvent",
    "InitFrame",
    "ProgressFrame",
    "CompleteFrame",
    "ErrorFrame",
    "FrameDecoder",
    "encode_frame",
    "decode_stream",
    "SpreadsheetTable",
    "read_table",
    "TEMPLATE_COLUMNS",
    "ColumnMap",
    "ParsedRow",
    "parse_row",
    "UpsertOutcome",
    "upsert_row",
]
