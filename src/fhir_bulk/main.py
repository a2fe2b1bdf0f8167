"""Entry point for the fhir-bulk CLI."""

import argparse
import dataclasses
import json
import logging
import sys

from dependency_injector import providers

from fhir_bulk.config import Config, config as default_config
from fhir_bulk.errors import BulkError, ConfigurationError, SubmissionError
from fhir_bulk.handlers.bulk_export import run_export
from fhir_bulk.handlers.bulk_import import run_import, validate_import_options
from fhir_bulk.infrastructure import DependenciesContainer
from fhir_bulk.models.schemas import ExportOptions, ImportOptions, ImportSummary, SubmissionResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with UTF-8 support for Windows console."""
    if sys.stdout.encoding and sys.stdout.encoding.lower() != "utf-8":
        sys.stdout.reconfigure(encoding="utf-8")

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def print_result(result: SubmissionResult) -> None:
    """Write one entry outcome to stdout as indented JSON."""
    sys.stdout.write(json.dumps(result.response, indent=2) + "\n")
    sys.stdout.flush()


def _add_connection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--base-url", help="FHIR server base URL (env FHIR_BASE_URL)")
    parser.add_argument("--fhir-url-path", help="FHIR API path under the base URL")
    parser.add_argument("--token-url", help="OAuth2 token path under the base URL")
    parser.add_argument("--client-id", help="OAuth2 client id (env FHIR_CLIENT_ID)")
    parser.add_argument("--client-secret", help="OAuth2 client secret (env FHIR_CLIENT_SECRET)")
    parser.add_argument("--access-token", help="Static bearer token (env FHIR_ACCESS_TOKEN)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")


def build_parser(defaults: Config = default_config) -> argparse.ArgumentParser:
    """Build the CLI parser; the batch size default comes from BATCH_SIZE."""
    parser = argparse.ArgumentParser(
        prog="fhir-bulk",
        description="Bulk export and import of FHIR resources as NDJSON",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Download a bulk export as NDJSON files")
    export_parser.add_argument(
        "-e",
        "--export-level",
        help='Optional export level. Defaults to system level export. '
        '"Group/:id" - Group of Patients, "Patient" - All Patients.',
    )
    export_parser.add_argument("-t", "--types", help="Optional resource types to export")
    export_parser.add_argument(
        "-s",
        "--since",
        help="Only include resources whose meta.lastUpdated is later than this time",
    )
    export_parser.add_argument(
        "-d",
        "--target-directory",
        help="Optional target directory to save files from the bulk export",
    )
    _add_connection_args(export_parser)

    import_parser = subparsers.add_parser("import", help="Import NDJSON files as transaction bundles")
    import_parser.add_argument(
        "path",
        nargs="?",
        help="File name, or directory containing NDJSON files",
    )
    import_parser.add_argument(
        "--is-directory",
        action="store_true",
        help="Treat the target as a directory containing NDJSON files",
    )
    import_parser.add_argument(
        "--num-resources-per-request",
        default=str(defaults.batch_size),
        help=f"Number of resources to import per batch request (default: {defaults.batch_size})",
    )
    import_parser.add_argument(
        "--add-extensions-for-missing-values",
        action="store_true",
        help="Add data-absent-reason extensions for missing required values",
    )
    import_parser.add_argument(
        "-d",
        "--target-directory",
        help="Directory of the file to import, or the directory to scan with --is-directory",
    )
    _add_connection_args(import_parser)

    return parser


def build_config(args: argparse.Namespace, base: Config = default_config) -> Config:
    """Apply CLI connection overrides on top of the environment config."""
    overrides = {
        field: getattr(args, field)
        for field in (
            "base_url",
            "fhir_url_path",
            "token_url",
            "client_id",
            "client_secret",
            "access_token",
        )
        if getattr(args, field, None)
    }
    cfg = dataclasses.replace(base, **overrides)
    cfg.validate()
    return cfg


def build_import_options(args: argparse.Namespace) -> ImportOptions:
    """Translate import arguments, rejecting a non-numeric batch size."""
    try:
        batch_size = int(args.num_resources_per_request)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"--num-resources-per-request must be an integer, got {args.num_resources_per_request!r}"
        ) from e

    options = ImportOptions(
        path=args.path,
        is_directory=args.is_directory,
        target_directory=args.target_directory,
        batch_size=batch_size,
        add_extensions_for_missing_values=args.add_extensions_for_missing_values,
    )
    validate_import_options(options)
    return options


def _import(container: DependenciesContainer, options: ImportOptions) -> int:
    summary = ImportSummary()
    logger.info("=" * 60)
    logger.info("Starting bulk import")
    logger.info("=" * 60)

    try:
        run_import(
            options,
            container.batch_submitter(),
            on_result=print_result,
            summary=summary,
        )
    except SubmissionError as e:
        logger.error("Import aborted: %s", e)
        if e.maybe_applied:
            logger.error(
                "Batches confirmed before failure: %d; outcome of batch %d unknown, "
                "check the store before resuming",
                summary.batches_submitted,
                e.batch_number,
            )
        else:
            logger.error(
                "Batches confirmed before failure: %d; batch %d was not applied",
                summary.batches_submitted,
                e.batch_number,
            )
        return EXIT_FAILURE
    except KeyboardInterrupt:
        if summary.in_flight_batch is not None:
            logger.warning(
                "Interrupted: processed through batch %d, outcome of batch %d unknown",
                summary.batches_submitted,
                summary.in_flight_batch,
            )
        else:
            logger.warning(
                "Interrupted: processed through batch %d, no batch in flight",
                summary.batches_submitted,
            )
        return EXIT_FAILURE

    failed = summary.failed_files
    logger.info("=" * 60)
    logger.info(
        "Completed: %d files, %d batches, %d failed",
        len(summary.files),
        summary.batches_submitted,
        len(failed),
    )
    for file_result in failed:
        logger.error("  %s: %s", file_result.path, file_result.error)
    logger.info("=" * 60)
    return EXIT_FAILURE if failed else EXIT_OK


def _export(args: argparse.Namespace, container: DependenciesContainer) -> int:
    options = ExportOptions(
        export_level=args.export_level,
        types=args.types,
        since=args.since,
        target_directory=args.target_directory,
    )
    try:
        run_export(options, container.exporter())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_FAILURE
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        import_options = build_import_options(args) if args.command == "import" else None
        cfg = build_config(args)
    except ConfigurationError as e:
        logger.error("Error: %s", e)
        return EXIT_CONFIG

    container = DependenciesContainer()
    container.config.override(providers.Object(cfg))

    try:
        if args.command == "import":
            return _import(container, import_options)
        return _export(args, container)
    except BulkError as e:
        logger.error("Error: %s", e)
        return EXIT_FAILURE
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        return EXIT_FAILURE
    finally:
        container.shutdown_resources()


if __name__ == "__main__":
    sys.exit(main())
