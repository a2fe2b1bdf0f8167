"""Handlers package."""

from fhir_bulk.handlers.bulk_export import run_export
from fhir_bulk.handlers.bulk_import import import_file, resolve_targets, run_import

__all__ = ["import_file", "resolve_targets", "run_export", "run_import"]
