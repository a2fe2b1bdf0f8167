"""HTTP client wrapper for a FHIR R4 store."""

import logging
import time
from pathlib import Path
from typing import Any

import httpx

from fhir_bulk.config import Config
from fhir_bulk.errors import ExportError

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class FhirClient:
    """Handles authenticated requests against a FHIR store."""

    def __init__(self, client: httpx.Client, config: Config):
        """
        Initialize FHIR client wrapper.

        Args:
            client: httpx client used for every request.
            config: Connection settings (base URL, credentials, polling).
        """
        self._client = client
        self._config = config
        self._token: str | None = config.access_token or None

    @property
    def fhir_base_url(self) -> str:
        """Base URL of the FHIR API."""
        return self._config.fhir_base_url

    def _get_token(self) -> str:
        """Return a bearer token, fetching one with client credentials if needed."""
        if self._token:
            return self._token

        logger.info("Requesting access token from %s", self._config.token_endpoint)
        response = self._client.post(
            self._config.token_endpoint,
            data={
                "grant_type": "client_credentials",
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
            },
        )
        response.raise_for_status()
        self._token = response.json()["access_token"]
        return self._token

    @property
    def can_refresh_token(self) -> bool:
        """Whether a rejected token can be replaced using client credentials."""
        return not self._config.access_token and bool(
            self._config.client_id and self._config.client_secret
        )

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._get_token()}",
            "Accept": FHIR_JSON,
        }
        headers.update(extra)
        return headers

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        stream: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send an authenticated request.

        A 401 with client credentials configured discards the cached token
        and retries once with a fresh one. Static tokens are never refreshed.
        """
        extra = headers or {}
        request = self._client.build_request(method, url, headers=self._headers(**extra), **kwargs)
        response = self._client.send(request, stream=stream)

        if response.status_code == 401 and self.can_refresh_token:
            response.close()
            logger.info("Access token rejected, requesting a new one")
            self._token = None
            request = self._client.build_request(method, url, headers=self._headers(**extra), **kwargs)
            response = self._client.send(request, stream=stream)

        return response

    def execute_batch(self, bundle: dict[str, Any]) -> dict[str, Any]:
        """
        Post a batch or transaction Bundle to the store.

        Args:
            bundle: Bundle resource with type "batch" or "transaction".

        Returns:
            Response Bundle with one entry per submitted entry.

        Raises:
            httpx.HTTPStatusError: On a non-2xx response.
            httpx.TransportError: On network failures.
        """
        response = self._send(
            "POST",
            self.fhir_base_url,
            headers={"Content-Type": FHIR_JSON},
            json=bundle,
        )
        response.raise_for_status()
        return response.json()

    def bulk_export(
        self,
        export_level: str | None = None,
        types: str | None = None,
        since: str | None = None,
    ) -> dict[str, Any]:
        """
        Start a bulk export and wait for its completion manifest.

        Args:
            export_level: "" for system level, "Patient", or "Group/<id>".
            types: Comma-separated resource types to include.
            since: Only include resources updated after this instant.

        Returns:
            The completion manifest (``output`` lists the files to download).
        """
        level = (export_level or "").strip("/")
        url = f"{self.fhir_base_url}{level}/$export" if level else f"{self.fhir_base_url}$export"

        params = {}
        if types:
            params["_type"] = types
        if since:
            params["_since"] = since

        logger.info("Starting bulk export: %s", url)
        response = self._send("GET", url, headers={"Prefer": "respond-async"}, params=params)
        response.raise_for_status()

        if response.status_code != 202:
            # Server answered synchronously
            return response.json()

        status_url = response.headers.get("Content-Location")
        if not status_url:
            raise httpx.HTTPStatusError(
                "Bulk export accepted without a Content-Location header",
                request=response.request,
                response=response,
            )
        return self._poll_export(status_url)

    def _poll_export(self, status_url: str) -> dict[str, Any]:
        deadline = time.monotonic() + self._config.export_max_wait

        while True:
            response = self._send("GET", status_url)
            response.raise_for_status()

            if response.status_code != 202:
                return response.json()

            progress = response.headers.get("X-Progress", "in progress")
            logger.info("Export %s: %s", status_url, progress)

            if time.monotonic() >= deadline:
                raise ExportError(
                    f"Bulk export not complete after {self._config.export_max_wait}s: {status_url}"
                )
            time.sleep(self._config.export_poll_interval)

    def download(self, url: str, dest_path: Path) -> Path:
        """
        Stream a file from the store to disk.

        Args:
            url: Absolute URL from an export manifest.
            dest_path: Local path to write.

        Returns:
            The written path.
        """
        response = self._send("GET", url, headers={"Accept": "*/*"}, stream=True)
        try:
            response.raise_for_status()
            with open(dest_path, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
        finally:
            response.close()
        return dest_path
