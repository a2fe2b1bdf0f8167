"""Tests for the command-line entry point."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from fhir_bulk.config import Config
from fhir_bulk.errors import ConfigurationError, SubmissionError
from fhir_bulk.infrastructure.fhir_client import FhirClient
from fhir_bulk.main import (
    EXIT_CONFIG,
    EXIT_FAILURE,
    EXIT_OK,
    build_config,
    build_import_options,
    build_parser,
    main,
    print_result,
)
from fhir_bulk.models.schemas import SubmissionResult
from fhir_bulk.services.exporter import Exporter
from fhir_bulk.services.submitter import BatchSubmitter


def _submitter_ok():
    submitter = MagicMock(spec=BatchSubmitter)
    submitter.submit.side_effect = lambda batch: [
        SubmissionResult(batch_number=batch.number, index=i, response={"status": "201 Created"})
        for i in range(len(batch))
    ]
    return submitter


class TestBuildParser:
    """Tests for CLI argument parsing."""

    def test_import_defaults(self):
        """Test import flag defaults."""
        args = build_parser(Config(batch_size=25)).parse_args(["import", "patients.ndjson"])

        assert args.path == "patients.ndjson"
        assert args.is_directory is False
        assert args.num_resources_per_request == "25"
        assert args.add_extensions_for_missing_values is False
        assert args.target_directory is None

    def test_export_options(self):
        """Test export short options."""
        args = build_parser().parse_args(
            ["export", "-e", "Patient", "-t", "Patient,Observation", "-s", "2024-01-01", "-d", "out"]
        )

        assert args.export_level == "Patient"
        assert args.types == "Patient,Observation"
        assert args.since == "2024-01-01"
        assert args.target_directory == "out"


class TestBuildImportOptions:
    """Tests for build_import_options."""

    def test_converts_batch_size(self):
        """Test the batch size string is converted to an int."""
        args = build_parser().parse_args(
            ["import", "a.ndjson", "--num-resources-per-request", "50", "--add-extensions-for-missing-values"]
        )

        options = build_import_options(args)

        assert options.batch_size == 50
        assert options.add_extensions_for_missing_values is True

    def test_batch_size_default_from_config(self):
        """Test BATCH_SIZE sets the default number of resources per request."""
        args = build_parser(Config(batch_size=5)).parse_args(["import", "x.ndjson"])

        assert build_import_options(args).batch_size == 5

    def test_flag_overrides_config_batch_size(self):
        """Test an explicit flag wins over BATCH_SIZE."""
        args = build_parser(Config(batch_size=5)).parse_args(
            ["import", "x.ndjson", "--num-resources-per-request", "40"]
        )

        assert build_import_options(args).batch_size == 40

    @pytest.mark.parametrize("value", ["abc", "0", "-3", "2.5"])
    def test_rejects_bad_batch_size(self, value):
        """Test non-numeric or non-positive sizes are configuration errors."""
        args = build_parser().parse_args(["import", "a.ndjson", "--num-resources-per-request", value])

        with pytest.raises(ConfigurationError):
            build_import_options(args)


class TestBuildConfig:
    """Tests for build_config."""

    def test_cli_overrides_environment(self):
        """Test CLI connection flags win over the base config."""
        base = Config(base_url="https://env.test/", access_token="env-token")
        args = build_parser().parse_args(
            ["import", "a.ndjson", "--base-url", "https://cli.test/", "--access-token", "cli-token"]
        )

        cfg = build_config(args, base)

        assert cfg.base_url == "https://cli.test/"
        assert cfg.access_token == "cli-token"
        assert base.base_url == "https://env.test/"

    def test_missing_credentials(self):
        """Test build_config validates the merged config."""
        base = Config(access_token="", client_id="", client_secret="")
        args = build_parser().parse_args(["import", "a.ndjson"])

        with pytest.raises(ConfigurationError):
            build_config(args, base)


class TestPrintResult:
    """Tests for print_result."""

    def test_prints_response_json(self, capsys):
        """Test the store response is written to stdout as JSON."""
        print_result(SubmissionResult(batch_number=1, index=0, response={"status": "201 Created"}))

        out = capsys.readouterr().out
        assert json.loads(out) == {"status": "201 Created"}


class TestMain:
    """Tests for main."""

    @patch("fhir_bulk.main.DependenciesContainer")
    def test_import_without_path_exits_before_io(self, mock_container_cls):
        """Test a missing file name exits with the configuration code."""
        code = main(["import", "--access-token", "t"])

        assert code == EXIT_CONFIG
        mock_container_cls.assert_not_called()

    @patch("fhir_bulk.main.DependenciesContainer")
    def test_directory_without_target_exits_before_io(self, mock_container_cls):
        """Test --is-directory without a directory exits with the configuration code."""
        code = main(["import", "--is-directory", "--access-token", "t"])

        assert code == EXIT_CONFIG
        mock_container_cls.assert_not_called()

    @patch("fhir_bulk.main.DependenciesContainer")
    def test_import_success(self, mock_container_cls, tmp_path, capsys):
        """Test a successful import prints each outcome and exits 0."""
        path = tmp_path / "patients.ndjson"
        path.write_text(
            '{"resourceType": "Patient", "id": "1"}\n{"resourceType": "Patient", "id": "2"}\n',
            encoding="utf-8",
        )
        container = mock_container_cls.return_value
        container.batch_submitter.return_value = _submitter_ok()

        code = main(["import", str(path), "--access-token", "t"])

        assert code == EXIT_OK
        assert capsys.readouterr().out.count('"status": "201 Created"') == 2
        container.config.override.assert_called_once()
        container.shutdown_resources.assert_called_once()

    @patch("fhir_bulk.main.DependenciesContainer")
    def test_import_with_bad_file_exits_1(self, mock_container_cls, tmp_path):
        """Test a parse failure gives a non-zero exit code."""
        path = tmp_path / "bad.ndjson"
        path.write_text("not json\n", encoding="utf-8")
        mock_container_cls.return_value.batch_submitter.return_value = _submitter_ok()

        assert main(["import", str(path), "--access-token", "t"]) == EXIT_FAILURE

    @patch("fhir_bulk.main.DependenciesContainer")
    def test_import_submission_error_exits_1(self, mock_container_cls, tmp_path):
        """Test a failed batch gives a non-zero exit code."""
        path = tmp_path / "patients.ndjson"
        path.write_text('{"resourceType": "Patient"}\n', encoding="utf-8")
        submitter = MagicMock(spec=BatchSubmitter)
        submitter.submit.side_effect = SubmissionError(1, str(path), "HTTP 503")
        mock_container_cls.return_value.batch_submitter.return_value = submitter

        assert main(["import", str(path), "--access-token", "t"]) == EXIT_FAILURE

    @patch("fhir_bulk.main.DependenciesContainer")
    def test_export(self, mock_container_cls, tmp_path):
        """Test export runs the exporter with the CLI options."""
        exporter = MagicMock(spec=Exporter)
        exporter.export.return_value = []
        mock_container_cls.return_value.exporter.return_value = exporter

        code = main(["export", "-t", "Patient", "-d", str(tmp_path), "--access-token", "t"])

        assert code == EXIT_OK
        exporter.export.assert_called_once_with(
            export_level=None,
            types="Patient",
            since=None,
            target_directory=tmp_path,
        )

    @patch("fhir_bulk.services.submitter.time.sleep")
    @patch("fhir_bulk.main.DependenciesContainer")
    def test_timeout_reports_unknown_outcome(self, mock_container_cls, mock_sleep, tmp_path, caplog):
        """Test a timed-out batch is reported as unknown, not as not applied."""
        path = tmp_path / "patients.ndjson"
        path.write_text('{"resourceType": "Patient"}\n', encoding="utf-8")
        mock_client = MagicMock(spec=FhirClient)
        mock_client.execute_batch.side_effect = httpx.ReadTimeout("timed out")
        mock_container_cls.return_value.batch_submitter.return_value = BatchSubmitter(
            mock_client, max_retries=1, backoff=0
        )

        code = main(["import", str(path), "--access-token", "t"])

        assert code == EXIT_FAILURE
        assert "outcome of batch 1 unknown" in caplog.text
        assert "was not applied" not in caplog.text

    @patch("fhir_bulk.main.DependenciesContainer")
    def test_rejected_batch_reports_not_applied(self, mock_container_cls, tmp_path, caplog):
        """Test a definite rejection is reported as not applied."""
        path = tmp_path / "patients.ndjson"
        path.write_text('{"resourceType": "Patient"}\n', encoding="utf-8")
        submitter = MagicMock(spec=BatchSubmitter)
        submitter.submit.side_effect = SubmissionError(1, str(path), "HTTP 400", maybe_applied=False)
        mock_container_cls.return_value.batch_submitter.return_value = submitter

        assert main(["import", str(path), "--access-token", "t"]) == EXIT_FAILURE
        assert "batch 1 was not applied" in caplog.text

    @patch("fhir_bulk.main.DependenciesContainer")
    def test_interrupt_during_submit(self, mock_container_cls, tmp_path, caplog):
        """Test an interrupt while a batch is in flight names that batch."""
        path = tmp_path / "patients.ndjson"
        path.write_text('{"resourceType": "Patient"}\n', encoding="utf-8")
        submitter = MagicMock(spec=BatchSubmitter)
        submitter.submit.side_effect = KeyboardInterrupt
        mock_container_cls.return_value.batch_submitter.return_value = submitter

        assert main(["import", str(path), "--access-token", "t"]) == EXIT_FAILURE
        assert "outcome of batch 1 unknown" in caplog.text

    @patch("fhir_bulk.handlers.bulk_import.read_lines", side_effect=KeyboardInterrupt)
    @patch("fhir_bulk.main.DependenciesContainer")
    def test_interrupt_while_reading(self, mock_container_cls, mock_read, tmp_path, caplog):
        """Test an interrupt between batches does not claim an unknown batch."""
        mock_container_cls.return_value.batch_submitter.return_value = _submitter_ok()

        code = main(["import", str(tmp_path / "patients.ndjson"), "--access-token", "t"])

        assert code == EXIT_FAILURE
        assert "no batch in flight" in caplog.text
        assert "unknown" not in caplog.text
