"""Tests for Pydantic models."""

from fhir_bulk.models.schemas import (
    Batch,
    BatchEntry,
    ExportManifest,
    FileImportResult,
    ImportSummary,
    SubmissionResult,
)


class TestBatchEntry:
    """Tests for BatchEntry model."""

    def test_create_targets_resource_type(self):
        """Test create builds a POST to the resource's type."""
        entry = BatchEntry.create({"resourceType": "Patient", "id": "p1"})

        assert entry.request.method == "POST"
        assert entry.request.url == "Patient"
        assert entry.resource == {"resourceType": "Patient", "id": "p1"}


class TestBatch:
    """Tests for Batch model."""

    def test_to_bundle(self):
        """Test a batch renders as a transaction Bundle in entry order."""
        batch = Batch(
            number=1,
            source="patients.ndjson",
            entries=[
                BatchEntry.create({"resourceType": "Patient", "id": "a"}),
                BatchEntry.create({"resourceType": "Observation", "id": "b"}),
            ],
        )

        bundle = batch.to_bundle()

        assert bundle["resourceType"] == "Bundle"
        assert bundle["type"] == "transaction"
        assert bundle["entry"] == [
            {
                "resource": {"resourceType": "Patient", "id": "a"},
                "request": {"method": "POST", "url": "Patient"},
            },
            {
                "resource": {"resourceType": "Observation", "id": "b"},
                "request": {"method": "POST", "url": "Observation"},
            },
        ]
        assert len(batch) == 2


class TestSubmissionResult:
    """Tests for SubmissionResult model."""

    def test_status_and_location(self):
        """Test convenience accessors read the response payload."""
        result = SubmissionResult(
            batch_number=3,
            index=0,
            response={"status": "201 Created", "location": "Patient/123/_history/1"},
        )

        assert result.status == "201 Created"
        assert result.location == "Patient/123/_history/1"

    def test_empty_response(self):
        """Test accessors return None when the store sent no details."""
        result = SubmissionResult(batch_number=1, index=0)

        assert result.status is None
        assert result.location is None


class TestImportSummary:
    """Tests for ImportSummary model."""

    def test_failed_files(self):
        """Test failed_files only lists files with an error."""
        summary = ImportSummary(
            files=[
                FileImportResult(path="a.ndjson", records=3, batches=1),
                FileImportResult(path="b.ndjson", error="invalid record at b.ndjson:2"),
            ],
            batches_submitted=1,
        )

        assert [f.path for f in summary.failed_files] == ["b.ndjson"]
        assert summary.files[0].success is True


class TestExportManifest:
    """Tests for ExportManifest model."""

    def test_from_server_json(self):
        """Test parsing a bulk export completion manifest."""
        manifest = ExportManifest.model_validate(
            {
                "transactionTime": "2024-05-01T00:00:00Z",
                "request": "https://fhir.test/fhir/R4/$export",
                "requiresAccessToken": True,
                "output": [
                    {"type": "Patient", "url": "https://fhir.test/storage/1/Patient.ndjson"},
                ],
                "error": [],
            }
        )

        assert manifest.transaction_time == "2024-05-01T00:00:00Z"
        assert len(manifest.output) == 1
        assert manifest.output[0].type == "Patient"
        assert manifest.error == []
