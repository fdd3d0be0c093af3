"""Typed errors raised by the ingestion pipeline.

Each error carries the HTTP status it maps to and a short category used by
API clients to pick a user-facing message.
"""
from typing import Any, Dict, Iterable, Optional


class IngestionError(Exception):
    """Base class for all pipeline errors."""

    status_code = 500
    category = "ingestion_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.category, "detail": self.message, **self.extra}


# Input rejection


class UnsupportedFileTypeError(IngestionError):
    status_code = 400
    category = "unsupported_file_type"


class FileTooLargeError(IngestionError):
    status_code = 400
    category = "file_too_large"


class EmptyFileError(IngestionError):
    status_code = 400
    category = "empty_file"


class DuplicateFileError(IngestionError):
    status_code = 409
    category = "duplicate_file"

    def __init__(self, original_file_id: str):
        super().__init__(
            "This file was already uploaded", original_file_id=original_file_id
        )
        self.original_file_id = original_file_id


class UploadNotFoundError(IngestionError):
    status_code = 404
    category = "file_not_found"

    def __init__(self, file_id: str):
        super().__init__(f"File {file_id} not found", file_id=file_id)


# Parsing


class FileParseError(IngestionError):
    status_code = 422
    category = "parse_failed"


# Lifecycle


class InvalidStatusTransitionError(IngestionError):
    status_code = 409
    category = "invalid_status_transition"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move file from '{current}' to '{target}'",
            current_status=current,
            requested_status=target,
        )


class ConcurrentProcessingError(IngestionError):
    status_code = 409
    category = "concurrent_processing"


class FileNotReadyError(IngestionError):
    """The file has not reached the status an operation needs."""

    status_code = 409
    category = "file_not_ready"


# Mapping and validation


class MissingRequiredFieldsError(IngestionError):
    status_code = 422
    category = "missing_required_fields"

    def __init__(self, fields: Iterable[str]):
        fields = sorted(fields)
        super().__init__(
            f"Missing required fields: {', '.join(fields)}", missing_fields=fields
        )
        self.fields = fields


class UnknownStandardFieldError(IngestionError):
    status_code = 422
    category = "unknown_standard_field"


class UnknownSourceColumnError(IngestionError):
    status_code = 422
    category = "unknown_source_column"

    def __init__(self, columns: Iterable[str]):
        columns = sorted(columns)
        super().__init__(
            f"Columns not present in the file: {', '.join(columns)}", unknown_columns=columns
        )
        self.columns = columns


class InvalidTransformationError(IngestionError):
    status_code = 422
    category = "invalid_transformation"


class TransformationError(IngestionError):
    """A single value could not be transformed (row-level, never fatal)."""

    status_code = 422
    category = "transformation_failed"


# External dependencies


class LLMError(IngestionError):
    status_code = 502
    category = "llm_error"


class LLMAuthenticationError(LLMError):
    status_code = 503
    category = "llm_authentication_failed"

    def __init__(self, message: str = "Authentication with the language model API failed. Check the API key."):
        super().__init__(message)


class LLMModelNotFoundError(LLMError):
    status_code = 503
    category = "llm_model_not_found"

    def __init__(self, model: Optional[str] = None):
        super().__init__(
            f"Language model '{model}' was not found. Check the configured model name.",
            model=model,
        )


class LLMRateLimitError(LLMError):
    status_code = 429
    category = "llm_rate_limited"

    def __init__(self, message: str = "Language model API rate limit exceeded. Retry later."):
        super().__init__(message)


class LLMUnavailableError(LLMError):
    category = "llm_unavailable"


class MalformedLLMResponseError(LLMError):
    category = "llm_malformed_response"


class StorageError(IngestionError):
    status_code = 502
    category = "storage_error"


class StorageReadError(StorageError):
    category = "storage_read_failed"


class StorageWriteError(StorageError):
    category = "storage_write_failed"
