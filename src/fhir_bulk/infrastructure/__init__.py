"""Infrastructure package."""

from fhir_bulk.infrastructure.dependency_injection import DependenciesContainer
from fhir_bulk.infrastructure.fhir_client import FhirClient

__all__ = [
    "DependenciesContainer",
    "FhirClient",
]
