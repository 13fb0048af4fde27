"""Customer spreadsheet import endpoints."""

from __future__ import annotations

import csv
import io
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse

from ...config import settings
from ...persistence.customers import CustomerStore
from ...services.imports import TEMPLATE_COLUMNS, ErrorFrame, ImportOrchestrator, encode_frame
from ...services.imports.readers import SUPPORTED_SUFFIXES, file_suffix
from ..deps import get_account_id, get_customer_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["imports"])


def _wants_stream(request: Request) -> bool:
    return "text/event-stream" in request.headers.get("accept", "").lower()


@router.get("/import/template")
def download_import_template() -> Response:
    """Empty CSV with the expected header row."""
    buffer = io.StringIO()
    csv.writer(buffer).writerow(TEMPLATE_COLUMNS)
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=customer_import_template.csv"},
    )


@router.post("/import")
async def import_customers(
    request: Request,
    file: UploadFile | None = File(default=None),
    account_id: str = Depends(get_account_id),
    store: CustomerStore = Depends(get_customer_store),
):
    """Import customers from a CSV or XLSX upload.

    With ``Accept: text/event-stream`` the response is a stream of
    ``data: {...}`` frames (init, progress…, complete|error) and always has
    status 200 once started. Other callers receive the terminal frame as one
    JSON object.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided.")

    if file_suffix(file.filename) not in SUPPORTED_SUFFIXES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only .csv and .xlsx files are supported.",
        )

    contents = await file.read()
    if len(contents) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.max_upload_bytes} byte upload limit.",
        )

    orchestrator = ImportOrchestrator(store, account_id)
    filename = file.filename

    if _wants_stream(request):

        async def frames():
            async for event in orchestrator.stream(contents, filename, should_stop=request.is_disconnected):
                yield encode_frame(event)

        return StreamingResponse(
            frames(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    terminal = await orchestrator.run(contents, filename)
    if isinstance(terminal, ErrorFrame):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=terminal.model_dump())
    return terminal.model_dump()
