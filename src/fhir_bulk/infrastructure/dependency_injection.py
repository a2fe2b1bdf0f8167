"""Dependency injection container for the application."""

import httpx
from dependency_injector import providers
from dependency_injector.containers import DeclarativeContainer

from fhir_bulk.config import Config, config as default_config
from fhir_bulk.infrastructure.fhir_client import FhirClient


def _init_http_client(config: Config):
    """Create the shared httpx client; closed on container shutdown."""
    client = httpx.Client(timeout=config.request_timeout, follow_redirects=True)
    yield client
    client.close()


def _create_batch_submitter(fhir_client: FhirClient, config: Config):
    """Factory for BatchSubmitter to avoid circular import."""
    from fhir_bulk.services.submitter import BatchSubmitter

    return BatchSubmitter(
        fhir_client,
        max_retries=config.max_retries,
        backoff=config.retry_backoff,
    )


def _create_exporter(fhir_client: FhirClient):
    """Factory for Exporter to avoid circular import."""
    from fhir_bulk.services.exporter import Exporter

    return Exporter(fhir_client)


class DependenciesContainer(DeclarativeContainer):
    """DI container for the application."""

    config = providers.Object(default_config)

    http_client = providers.Resource(
        _init_http_client,
        config=config,
    )

    fhir_client = providers.Singleton(
        FhirClient,
        client=http_client,
        config=config,
    )

    batch_submitter = providers.Singleton(
        _create_batch_submitter,
        fhir_client=fhir_client,
        config=config,
    )

    exporter = providers.Singleton(
        _create_exporter,
        fhir_client=fhir_client,
    )
