"""Bulk export download service."""

import logging
import re
from pathlib import Path
from urllib.parse import urlparse

from fhir_bulk.infrastructure.fhir_client import FhirClient
from fhir_bulk.models.schemas import ExportManifest

logger = logging.getLogger(__name__)


def export_file_name(resource_type: str, url: str) -> str:
    """Build a flat local file name from an export output's type and URL path."""
    path = urlparse(url).path
    return re.sub(r"[^a-zA-Z0-9]+", "_", f"{resource_type}_{path}") + ".ndjson"


class Exporter:
    """Runs a bulk export and writes each output file locally."""

    def __init__(self, fhir_client: FhirClient):
        self._fhir_client = fhir_client

    def start(
        self,
        export_level: str | None = None,
        types: str | None = None,
        since: str | None = None,
    ) -> ExportManifest:
        """Kick off the export and wait for its manifest."""
        raw = self._fhir_client.bulk_export(export_level, types, since)
        manifest = ExportManifest.model_validate(raw)
        logger.info("Export complete: %d output files", len(manifest.output))
        for err in manifest.error:
            logger.warning("Export reported error file for %s: %s", err.type, err.url)
        return manifest

    def download_all(self, manifest: ExportManifest, target_directory: Path) -> list[Path]:
        """
        Download every output listed in the manifest.

        Args:
            manifest: Completed export manifest.
            target_directory: Directory to write into; created if missing.

        Returns:
            Paths of the written files, in manifest order.
        """
        target_directory.mkdir(parents=True, exist_ok=True)
        written = []
        for output in manifest.output:
            dest = (target_directory / export_file_name(output.type, output.url)).resolve()
            self._fhir_client.download(output.url, dest)
            written.append(dest)
        return written

    def export(
        self,
        export_level: str | None = None,
        types: str | None = None,
        since: str | None = None,
        target_directory: Path | None = None,
    ) -> list[Path]:
        """Run a bulk export end to end."""
        manifest = self.start(export_level, types, since)
        return self.download_all(manifest, target_directory or Path.cwd())
