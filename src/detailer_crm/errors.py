"""Error taxonomy for the customer import pipeline."""

from __future__ import annotations


class ImportPipelineError(Exception):
    """Base class for import pipeline failures."""


class RowError(ImportPipelineError):
    """A failure confined to one imported row; the batch continues."""

    kind = "RowError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingIdentityError(RowError):
    kind = "MissingIdentity"


class InvalidCellError(RowError):
    kind = "InvalidCell"


class PersistenceFailure(RowError):
    kind = "PersistenceFailure"


class MalformedFileError(ImportPipelineError):
    """The upload cannot be read at all; aborts the whole batch."""

    kind = "MalformedFile"


class UnsupportedFormatError(MalformedFileError):
    pass


class TransportDisconnect(ImportPipelineError):
    """The caller went away mid-stream. Never surfaced to users."""

    kind = "TransportDisconnect"


class CustomerNotFoundError(LookupError):
    pass


class NoteNotFoundError(LookupError):
    pass
