"""Error taxonomy shared by ingestion, query features and the API boundary."""

from __future__ import annotations


class CsvProcessingError(Exception):
    """Base class for failures while ingesting a CSV extract."""


class RowDataError(CsvProcessingError):
    """A single row cannot be applied; the row is skipped and the file continues."""


class FileStructureError(CsvProcessingError):
    """The file itself is unusable (header, syntax, encoding); the file is rolled back."""


class FileIngestionError(CsvProcessingError):
    """A row failure that was escalated; the whole file transaction is rolled back."""


class InconsistentDataError(Exception):
    """Stored data violates an invariant the core relies on."""


class NotFoundError(LookupError):
    """The caller referenced an entity that does not exist."""


class InvalidInputError(ValueError):
    """The caller supplied arguments the operation cannot accept."""
