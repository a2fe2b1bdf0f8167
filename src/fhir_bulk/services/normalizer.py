"""Parsing of NDJSON lines into FHIR resources, with optional repair."""

import copy
import json
from pathlib import Path
from typing import Any

from fhir_bulk.errors import ParseError
from fhir_bulk.models.schemas import Record

DATA_ABSENT_REASON_URL = "http://hl7.org/fhir/StructureDefinition/data-absent-reason"


def unsupported_extension() -> dict[str, Any]:
    """Placeholder for a required value the source system could not provide."""
    return {
        "extension": [
            {
                "url": DATA_ABSENT_REASON_URL,
                "valueCode": "unsupported",
            }
        ]
    }


def parse_record(line: str, line_number: int, path: Path | None = None) -> Record:
    """
    Parse one NDJSON line into a resource.

    Raises:
        ParseError: If the line is not a JSON object with a resourceType.
    """
    try:
        resource = json.loads(line)
    except json.JSONDecodeError as e:
        raise ParseError(path, line_number, line, e.msg) from e

    if not isinstance(resource, dict):
        raise ParseError(path, line_number, line, "expected a JSON object")

    resource_type = resource.get("resourceType")
    if not isinstance(resource_type, str) or not resource_type:
        raise ParseError(path, line_number, line, "missing resourceType")

    return resource


def add_extensions_for_missing_values(resource: Record) -> Record:
    """Fill required values the store would reject as missing."""
    if resource.get("resourceType") == "ExplanationOfBenefit":
        return _add_extensions_for_missing_values_eob(resource)
    return resource


def _add_extensions_for_missing_values_eob(resource: Record) -> Record:
    result = copy.deepcopy(resource)

    if not result.get("provider"):
        result["provider"] = unsupported_extension()

    for item in result.get("item") or []:
        if isinstance(item, dict) and not item.get("productOrService"):
            item["productOrService"] = unsupported_extension()

    return result


def normalize_line(
    line: str,
    line_number: int,
    add_extensions: bool = False,
    path: Path | None = None,
) -> Record:
    """Parse a line and, if requested, repair the resulting resource."""
    resource = parse_record(line, line_number, path)
    if add_extensions:
        return add_extensions_for_missing_values(resource)
    return resource
