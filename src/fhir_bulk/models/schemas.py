"""Pydantic models for bulk import batches and export manifests."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# A FHIR resource as parsed from one NDJSON line
Record = dict[str, Any]


class BatchRequest(BaseModel):
    """Submission directive attached to a bundle entry."""

    method: Literal["POST"] = "POST"
    url: str


class BatchEntry(BaseModel):
    """A resource paired with its create directive."""

    resource: Record
    request: BatchRequest

    @classmethod
    def create(cls, resource: Record) -> "BatchEntry":
        """Wrap a resource in a POST to its own resource type."""
        return cls(resource=resource, request=BatchRequest(url=resource["resourceType"]))


class Batch(BaseModel):
    """An ordered group of entries submitted as one transaction."""

    number: int
    source: str | None = None
    entries: list[BatchEntry]

    def __len__(self) -> int:
        return len(self.entries)

    def to_bundle(self) -> dict[str, Any]:
        """Render the batch as a FHIR transaction Bundle."""
        return {
            "resourceType": "Bundle",
            "type": "transaction",
            "entry": [entry.model_dump() for entry in self.entries],
        }


class SubmissionResult(BaseModel):
    """Store-reported outcome for one entry of a submitted batch."""

    batch_number: int
    index: int
    response: dict[str, Any] = Field(default_factory=dict)

    @property
    def status(self) -> str | None:
        return self.response.get("status")

    @property
    def location(self) -> str | None:
        return self.response.get("location")


class ImportOptions(BaseModel):
    """Options for an import run, as given on the command line."""

    path: str | None = None
    is_directory: bool = False
    target_directory: str | None = None
    batch_size: int = 25
    add_extensions_for_missing_values: bool = False


class FileImportResult(BaseModel):
    """Outcome of importing one file."""

    path: str
    records: int = 0
    batches: int = 0
    results: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class ImportSummary(BaseModel):
    """Outcome of a whole import run."""

    files: list[FileImportResult] = Field(default_factory=list)
    batches_submitted: int = 0
    # Number of the batch awaiting the store response, if any
    in_flight_batch: int | None = None

    @property
    def failed_files(self) -> list[FileImportResult]:
        return [f for f in self.files if not f.success]


class ExportOptions(BaseModel):
    """Options for an export run."""

    export_level: str | None = None
    types: str | None = None
    since: str | None = None
    target_directory: str | None = None


class ExportOutput(BaseModel):
    """One file listed in a bulk export manifest."""

    model_config = ConfigDict(extra="allow")

    type: str
    url: str
    count: int | None = None


class ExportManifest(BaseModel):
    """Completion manifest returned by a bulk export job."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    transaction_time: str | None = Field(default=None, alias="transactionTime")
    request: str | None = None
    output: list[ExportOutput] = Field(default_factory=list)
    error: list[ExportOutput] = Field(default_factory=list)
