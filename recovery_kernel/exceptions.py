"""
Typed Exception Hierarchy for the Recovery Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from RecoveryKernelError:

    RecoveryKernelError (base)
    |
    +-- IngestionError
    |   +-- MissingRequiredColumnError
    |   +-- BatchHandlerError
    |   +-- SourceReadError
    |
    +-- FileUploadError
    |   +-- FileUploadNotFoundError
    |
    +-- ReconciliationError
    |   +-- TrgidMutationError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError
        +-- ConfigValidationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Ingestion       | MISSING_REQUIRED_COLUMN     | Header lacks a required column (fatal)
                | BATCH_HANDLER_FAILED        | A batch handler raised mid-stream
                | SOURCE_READ_ERROR           | Source file missing or unreadable
----------------|-----------------------------|-----------------------------------------
File upload     | FILE_UPLOAD_NOT_FOUND       | FileUpload ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Reconciliation  | TRGID_IMMUTABLE             | Attempt to change a canonical trgid
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only lifecycle event
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIG_VALIDATION_ERROR     | Rule configuration failed validation

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS:

    try:
        scheduler.run_sync(tokenizer, handler)
    except BatchHandlerError as e:
        log.warning(f"stopped after {e.rows_committed} rows")

2. USE STRUCTURED DATA (not message parsing):

    except MissingRequiredColumnError as e:
        return {"error": e.code, "column": e.column, "headers": e.headers}

3. PARTIAL DURABILITY: a BatchHandlerError means every batch before
   ``batch_index`` is committed. Re-running the same file is safe.

Data-quality problems inside a row (unparsable numbers, bad dates,
unknown marketplaces) are NOT exceptions. They default and are recorded
as DataQualityWarning values by the column mapper.
"""


class RecoveryKernelError(Exception):
    """
    Base exception for all recovery kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "RECOVERY_KERNEL_ERROR"


# Ingestion-related exceptions


class IngestionError(RecoveryKernelError):
    """Base exception for ingestion errors."""

    code: str = "INGESTION_ERROR"


class MissingRequiredColumnError(IngestionError):
    """The file header lacks a column the ingestion cannot proceed without.

    Fatal for the whole file: raised before any batch is committed.
    """

    code: str = "MISSING_REQUIRED_COLUMN"

    def __init__(self, column: str, headers: tuple[str, ...] | list[str]):
        self.column = column
        self.headers = tuple(headers)
        super().__init__(
            f"Required column {column!r} not found in header "
            f"({len(self.headers)} columns)"
        )


class BatchHandlerError(IngestionError):
    """A batch handler raised; batches before ``batch_index`` remain committed."""

    code: str = "BATCH_HANDLER_FAILED"

    def __init__(self, batch_index: int, rows_committed: int, reason: str):
        self.batch_index = batch_index
        self.rows_committed = rows_committed
        self.reason = reason
        super().__init__(
            f"Batch {batch_index} failed after {rows_committed} committed rows: {reason}"
        )


class SourceReadError(IngestionError):
    """Source file does not exist or cannot be decoded."""

    code: str = "SOURCE_READ_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot read source {source}: {reason}")


# File upload exceptions


class FileUploadError(RecoveryKernelError):
    """Base exception for file upload errors."""

    code: str = "FILE_UPLOAD_ERROR"


class FileUploadNotFoundError(FileUploadError):
    """FileUpload with the given ID does not exist."""

    code: str = "FILE_UPLOAD_NOT_FOUND"

    def __init__(self, file_upload_id: str):
        self.file_upload_id = file_upload_id
        super().__init__(f"File upload not found: {file_upload_id}")


# Reconciliation exceptions


class ReconciliationError(RecoveryKernelError):
    """Base exception for canonical merge errors."""

    code: str = "RECONCILIATION_ERROR"


class TrgidMutationError(ReconciliationError):
    """A canonical unit's trgid may never change once created."""

    code: str = "TRGID_IMMUTABLE"

    def __init__(self, old_trgid: str, new_trgid: str):
        self.old_trgid = old_trgid
        self.new_trgid = new_trgid
        super().__init__(
            f"trgid is immutable: cannot change {old_trgid!r} to {new_trgid!r}"
        )


# Immutability exceptions


class ImmutabilityError(RecoveryKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify an immutable record.

    Lifecycle events are append-only; they are only ever removed by the
    cascade that accompanies deletion of their FileUpload.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration exceptions


class ConfigurationError(RecoveryKernelError):
    """Base exception for rule configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class ConfigValidationError(ConfigurationError):
    """Rule configuration failed validation."""

    code: str = "CONFIG_VALIDATION_ERROR"

    def __init__(self, source: str, errors: list[str]):
        self.source = source
        self.errors = list(errors)
        super().__init__(
            f"Invalid configuration {source}: " + "; ".join(self.errors)
        )
