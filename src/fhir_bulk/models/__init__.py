"""Models package."""

from fhir_bulk.models.schemas import (
    Batch,
    BatchEntry,
    BatchRequest,
    ExportManifest,
    ExportOptions,
    ExportOutput,
    FileImportResult,
    ImportOptions,
    ImportSummary,
    Record,
    SubmissionResult,
)

__all__ = [
    "Batch",
    "BatchEntry",
    "BatchRequest",
    "ExportManifest",
    "ExportOptions",
    "ExportOutput",
    "FileImportResult",
    "ImportOptions",
    "ImportSummary",
    "Record",
    "SubmissionResult",
]
