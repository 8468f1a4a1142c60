"""Error taxonomy for the backup pipeline.

Every stage raises a subclass of ``BackupStageError``.  Each subclass
carries a ``stage`` label so a failure can be reported as a single
``BackupError`` naming the failing stage and its underlying cause.

Usage:
    from pgs3backup.errors import BackupError, QueryError

    try:
        location = await run_backup(...)
    except BackupError as e:
        print(e.stage, e.cause)
"""


class BackupStageError(Exception):
    """Base class for failures raised by a pipeline stage."""

    stage = "backup"


class DatabaseConnectionError(BackupStageError):
    """Raised when the database cannot be reached."""

    stage = "connect"


class QueryError(BackupStageError):
    """Raised when a query is malformed or rejected by the server."""

    stage = "query"


class DeadlineExceeded(QueryError):
    """Raised when a query runs past the export deadline."""


class RowScanError(BackupStageError):
    """Raised when a row cannot be fetched or decoded."""

    stage = "scan"


class MetadataError(BackupStageError):
    """Raised when a catalog lookup fails."""

    stage = "metadata"


class ExportError(BackupStageError):
    """Raised when exporting one table's rows fails.

    Args:
        table: Qualified name of the table being exported.
        cause: The underlying row source failure.
    """

    stage = "export"

    def __init__(self, table: str, cause: BaseException) -> None:
        super().__init__(f"Failed to export table {table}: {cause}")
        self.table = table
        self.cause = cause


class FramingError(BackupStageError):
    """Raised when an archive header cannot be written."""

    stage = "archive"


class CompressionError(BackupStageError):
    """Raised when the compressor fails."""

    stage = "compress"


class SinkError(BackupStageError):
    """Raised when the upload of the byte stream fails."""

    stage = "upload"


class PipeClosedError(BackupStageError):
    """Raised when writing to a pipe whose read side has been closed."""

    stage = "pipe"


class BackupError(Exception):
    """The single error surfaced to callers of ``run_backup()``.

    Args:
        stage: Label of the stage that failed first.
        cause: The first failure observed by the pipeline.
    """

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"Backup failed during {stage}: {cause}")
        self.stage = stage
        self.cause = cause
