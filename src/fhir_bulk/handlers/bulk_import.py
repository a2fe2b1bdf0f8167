"""Import orchestration: files to lines to resources to transaction batches."""

import json
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import closing
from pathlib import Path

from fhir_bulk.errors import ConfigurationError, FileAccessError, ParseError
from fhir_bulk.models.schemas import (
    Batch,
    BatchEntry,
    FileImportResult,
    ImportOptions,
    ImportSummary,
    SubmissionResult,
)
from fhir_bulk.services.batcher import BatchAccumulator, validate_batch_size
from fhir_bulk.services.line_reader import read_lines
from fhir_bulk.services.normalizer import normalize_line
from fhir_bulk.services.submitter import BatchSubmitter

logger = logging.getLogger(__name__)

NDJSON_EXTENSION = ".ndjson"

ResultCallback = Callable[[SubmissionResult], None]


def log_result(result: SubmissionResult) -> None:
    """Default result callback: log the store's response for one entry."""
    logger.info(
        "Batch %d entry %d: %s",
        result.batch_number,
        result.index,
        json.dumps(result.response),
    )


def resolve_import_path(options: ImportOptions) -> Path:
    """
    Work out the file or directory an import run should read.

    Raises:
        ConfigurationError: If the required path for the chosen mode is missing.
    """
    if options.is_directory:
        directory = options.target_directory or options.path
        if not directory:
            raise ConfigurationError(
                "--target-directory must be specified when using --is-directory"
            )
        return Path(directory)

    if not options.path:
        raise ConfigurationError(
            "filenameOrDirectory must be specified when not using --is-directory"
        )
    base = Path(options.target_directory) if options.target_directory else Path.cwd()
    return base / options.path


def validate_import_options(options: ImportOptions) -> Path:
    """Check options before any I/O and return the resolved run target."""
    validate_batch_size(options.batch_size)
    return resolve_import_path(options)


def resolve_targets(path: Path, is_directory: bool) -> list[Path]:
    """
    Expand a run target into the files to import.

    Directory entries keep the order of the directory listing; only regular
    files ending in ``.ndjson`` are kept.

    Raises:
        FileAccessError: If the directory cannot be listed.
    """
    if not is_directory:
        return [path]

    try:
        names = os.listdir(path)
    except OSError as e:
        raise FileAccessError(path, e.strerror or str(e)) from e

    return [
        path / name
        for name in names
        if name.endswith(NDJSON_EXTENSION) and (path / name).is_file()
    ]


def _entries(path: Path, add_extensions: bool, file_result: FileImportResult) -> Iterator[BatchEntry]:
    with closing(read_lines(path)) as lines:
        for line_number, line in lines:
            resource = normalize_line(line, line_number, add_extensions, path)
            file_result.records += 1
            yield BatchEntry.create(resource)


def import_file(
    path: Path,
    submitter: BatchSubmitter,
    summary: ImportSummary,
    batch_size: int = 25,
    add_extensions: bool = False,
    on_result: ResultCallback = log_result,
) -> FileImportResult:
    """
    Stream one NDJSON file into the store.

    Batches are numbered across the whole run using ``summary``, which is
    updated as soon as each batch is confirmed.

    Raises:
        FileAccessError: If the file cannot be read.
        ParseError: At the first invalid line; the rest of the file is skipped.
        SubmissionError: If a batch could not be delivered.
    """
    file_result = FileImportResult(path=str(path))
    summary.files.append(file_result)
    accumulator = BatchAccumulator(batch_size)

    logger.info("Importing %s", path)
    with closing(_entries(path, add_extensions, file_result)) as entries:
        for chunk in accumulator.batches(entries):
            batch = Batch(
                number=summary.batches_submitted + 1,
                source=str(path),
                entries=chunk,
            )
            summary.in_flight_batch = batch.number
            results = submitter.submit(batch)
            summary.in_flight_batch = None
            summary.batches_submitted += 1
            file_result.batches += 1
            file_result.results += len(results)
            for result in results:
                on_result(result)

    logger.info(
        "Imported %s: %d resources in %d batches",
        path,
        file_result.records,
        file_result.batches,
    )
    return file_result


def run_import(
    options: ImportOptions,
    submitter: BatchSubmitter,
    on_result: ResultCallback = log_result,
    summary: ImportSummary | None = None,
) -> ImportSummary:
    """
    Import a file or every NDJSON file of a directory, one file at a time.

    A file that cannot be read or contains an invalid line is reported and
    skipped; the run moves on to the next file. Submission failures end the
    run.

    Args:
        options: Import options.
        submitter: BatchSubmitter used for every batch.
        on_result: Called with each entry outcome, in entry order.
        summary: Optional summary to fill in; lets callers see progress if
            the run is interrupted.

    Returns:
        ImportSummary with one FileImportResult per processed file.
    """
    target = validate_import_options(options)
    summary = summary if summary is not None else ImportSummary()

    files = resolve_targets(target, options.is_directory)
    logger.info("Files to import: %d", len(files))

    for i, path in enumerate(files, start=1):
        logger.info("[%d/%d] %s", i, len(files), path)
        try:
            import_file(
                path,
                submitter,
                summary,
                batch_size=options.batch_size,
                add_extensions=options.add_extensions_for_missing_values,
                on_result=on_result,
            )
        except (FileAccessError, ParseError) as e:
            summary.files[-1].error = str(e)
            logger.error("Skipping rest of %s: %s", path, e)

    return summary
