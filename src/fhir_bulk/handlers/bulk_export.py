"""Export orchestration handler."""

import logging
from pathlib import Path

from fhir_bulk.models.schemas import ExportOptions
from fhir_bulk.services.exporter import Exporter

logger = logging.getLogger(__name__)


def run_export(options: ExportOptions, exporter: Exporter) -> list[Path]:
    """
    Run a bulk export and save each output file as NDJSON.

    Args:
        options: Export level, resource types, since and target directory.
        exporter: Exporter service.

    Returns:
        Paths of the created files.
    """
    target = Path(options.target_directory) if options.target_directory else Path.cwd()

    paths = exporter.export(
        export_level=options.export_level,
        types=options.types,
        since=options.since,
        target_directory=target,
    )
    for path in paths:
        logger.info("%s is created", path)
    return paths
