"""Bulk import and export of FHIR resources as NDJSON."""

__version__ = "0.1.0"
