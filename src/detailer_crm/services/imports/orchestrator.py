"""End-to-end customer import: read, parse, match, upsert and report progress."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence

from ...config import settings
from ...errors import MalformedFileError, RowError, TransportDisconnect
from ...persistence.customers import CustomerStore
from .progress import (
    CompleteFrame,
    ErrorFrame,
    InitFrame,
    ProgressFrame,
    RowFailure,
    RowWarning,
    TerminalFrame,
)
from .readers import Cell, read_table
from .row_parser import ColumnMap, parse_row
from .upsert import upsert_row

logger = logging.getLogger(__name__)

StopCheck = Callable[[], Awaitable[bool]]


class ImportState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class ImportResult:
    state: ImportState = ImportState.IDLE
    total: int = 0
    processed: int = 0
    success_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    errors: list[RowFailure] = field(default_factory=list)
    warnings: list[RowWarning] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def error_count(self) -> int:
        return len(self.errors)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportOrchestrator:
    """Drives one import batch as a single sequential worker.

    Rows are never processed concurrently: two rows carrying the same new phone
    must see each other's writes, otherwise both would create a customer.
    Instances are single-use.
    """

    def __init__(
        self,
        store: CustomerStore,
        account_id: str,
        *,
        progress_every: Optional[int] = None,
        max_progress_frames: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.account_id = account_id
        self.progress_every = max(1, progress_every or settings.progress_every)
        self.max_progress_frames = max(1, max_progress_frames or settings.max_progress_frames)
        self.clock = clock
        self.result = ImportResult()

    @property
    def state(self) -> ImportState:
        return self.result.state

    def progress_interval(self, total: int) -> int:
        return max(self.progress_every, math.ceil(total / self.max_progress_frames))

    def _progress(self) -> ProgressFrame:
        return ProgressFrame(
            current=self.result.processed,
            total=self.result.total,
            successCount=self.result.success_count,
            errorCount=self.result.error_count,
        )

    def _complete(self) -> CompleteFrame:
        return CompleteFrame(
            successCount=self.result.success_count,
            errorCount=self.result.error_count,
            errors=list(self.result.errors),
            warnings=list(self.result.warnings),
        )

    def _fail(self, message: str) -> ErrorFrame:
        self.result.state = ImportState.FAILED
        self.result.message = message
        return ErrorFrame(error=message)

    def _record_failure(self, row_number: int, message: str) -> None:
        self.result.errors.append(RowFailure(row=row_number, error=message))

    async def _process_row(self, row_number: int, cells: Sequence[Cell], columns: ColumnMap) -> None:
        try:
            parsed = parse_row(cells, columns, row_number)
        except RowError as exc:
            logger.warning("Row %d rejected (%s): %s", row_number, exc.kind, exc.message)
            self._record_failure(row_number, exc.message)
            return
        except Exception as exc:
            logger.exception("Row %d could not be parsed", row_number)
            self._record_failure(row_number, str(exc) or "Unknown error processing row")
            return

        self.result.warnings.extend(RowWarning(row=row_number, warning=text) for text in parsed.warnings)

        try:
            # the store call is the one blocking step; keep it off the event loop
            outcome = await asyncio.to_thread(
                upsert_row, self.store, self.account_id, parsed.row, now=self.clock()
            )
        except RowError as exc:
            logger.warning("Row %d not saved (%s): %s", row_number, exc.kind, exc.message)
            self._record_failure(row_number, exc.message)
            return
        except Exception as exc:
            logger.exception("Row %d could not be saved", row_number)
            self._record_failure(row_number, f"Failed to save customer: {exc}")
            return

        self.result.success_count += 1
        if outcome.created:
            self.result.created_count += 1
        else:
            self.result.updated_count += 1

    async def stream(
        self,
        content: bytes,
        filename: str,
        *,
        should_stop: Optional[StopCheck] = None,
    ) -> AsyncIterator:
        """Yield ``init``, ``progress``… and one terminal frame for the upload.

        ``should_stop`` is awaited at every row boundary; when it reports true
        (caller disconnected) processing halts without a terminal frame. Rows
        committed before that point stay committed.
        """
        if self.result.state is not ImportState.IDLE:
            raise RuntimeError("ImportOrchestrator instances are single-use")

        self.result.state = ImportState.INITIALIZING
        try:
            table = read_table(content, filename)
            columns = ColumnMap.from_headers(table.headers)
        except MalformedFileError as exc:
            logger.error("Import of %s for account %s failed: %s", filename, self.account_id, exc)
            yield self._fail(str(exc))
            return

        self.result.total = table.total
        logger.info("Import of %s for account %s started: %d rows", filename, self.account_id, table.total)
        yield InitFrame(total=table.total)

        self.result.state = ImportState.PROCESSING
        interval = self.progress_interval(table.total)
        finished = False
        try:
            for row_number, cells in table.rows:
                if should_stop is not None and await should_stop():
                    raise TransportDisconnect(f"Caller disconnected before row {row_number}")
                await self._process_row(row_number, cells, columns)
                self.result.processed += 1
                if self.result.processed % interval == 0 or self.result.processed == table.total:
                    yield self._progress()
                else:
                    await asyncio.sleep(0)
            finished = True
        except TransportDisconnect as exc:
            self.result.state = ImportState.CANCELLED
            logger.info("Import for account %s halted after %d rows: %s", self.account_id, self.result.processed, exc)
            return
        except Exception as exc:
            logger.exception("Import for account %s aborted after %d rows", self.account_id, self.result.processed)
            yield self._fail(f"Import failed: {exc}")
            return
        finally:
            if self.result.state is ImportState.PROCESSING and not finished:
                # generator closed by the transport before the terminal frame
                self.result.state = ImportState.CANCELLED
                logger.info(
                    "Import for account %s stopped by transport after %d rows", self.account_id, self.result.processed
                )

        self.result.state = ImportState.COMPLETED
        logger.info(
            "Import for account %s completed: %d succeeded, %d failed",
            self.account_id,
            self.result.success_count,
            self.result.error_count,
        )
        yield self._complete()

    async def run(self, content: bytes, filename: str) -> TerminalFrame:
        """Drain the stream and return its terminal frame."""
        terminal = None
        async for event in self.stream(content, filename):
            terminal = event
        if not isinstance(terminal, (CompleteFrame, ErrorFrame)):
            raise RuntimeError("Import stream ended without a terminal frame")
        return terminal
