"""Submission of batches to the store as transaction bundles."""

import logging
import time

import httpx

from fhir_bulk.errors import SubmissionError
from fhir_bulk.infrastructure.fhir_client import FhirClient
from fhir_bulk.models.schemas import Batch, SubmissionResult

logger = logging.getLogger(__name__)

# Failures raised before any bytes of the request reached the store
_NOT_SENT = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


def _is_retryable(error: httpx.HTTPError) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return isinstance(error, httpx.TransportError)


def _may_have_been_applied(error: httpx.HTTPError) -> bool:
    """Whether the store could have committed the transaction despite the error."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return not isinstance(error, _NOT_SENT)


def _describe(error: httpx.HTTPError) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}: {error.response.text[:500]}"
    return str(error) or type(error).__name__


class BatchSubmitter:
    """Sends one batch at a time and returns the per-entry outcomes."""

    def __init__(
        self,
        fhir_client: FhirClient,
        max_retries: int = 3,
        backoff: float = 1.0,
    ):
        """
        Initialize batch submitter.

        Args:
            fhir_client: FhirClient instance.
            max_retries: Retries for transport errors, 429 and 5xx responses.
            backoff: Initial delay in seconds, doubled after each retry.
        """
        self._fhir_client = fhir_client
        self._max_retries = max_retries
        self._backoff = backoff

    def submit(self, batch: Batch) -> list[SubmissionResult]:
        """
        Submit a batch as one transaction.

        Args:
            batch: Non-empty batch to submit.

        Returns:
            One SubmissionResult per entry, in entry order.

        Raises:
            SubmissionError: If the request could not be completed.
                ``maybe_applied`` is False only when the store certainly
                did not commit the transaction.
        """
        bundle = batch.to_bundle()
        logger.info("Submitting batch %d (%d resources)", batch.number, len(batch))

        response = self._execute_with_retry(batch, bundle)

        if not isinstance(response, dict):
            raise SubmissionError(batch.number, batch.source, "store response is not a Bundle")

        response_entries = response.get("entry") or []
        if len(response_entries) != len(batch):
            raise SubmissionError(
                batch.number,
                batch.source,
                f"store returned {len(response_entries)} results for {len(batch)} entries",
            )

        results = []
        for i, entry in enumerate(response_entries):
            if not isinstance(entry, dict):
                raise SubmissionError(
                    batch.number,
                    batch.source,
                    f"store returned a malformed result at entry {i}",
                )
            results.append(
                SubmissionResult(
                    batch_number=batch.number,
                    index=i,
                    response=entry.get("response") or {},
                )
            )
        return results

    def _execute_with_retry(self, batch: Batch, bundle: dict) -> dict:
        delay = self._backoff
        maybe_applied = False
        for attempt in range(self._max_retries + 1):
            try:
                return self._fhir_client.execute_batch(bundle)
            except httpx.HTTPError as e:
                maybe_applied = maybe_applied or _may_have_been_applied(e)
                if attempt < self._max_retries and _is_retryable(e):
                    logger.warning(
                        "Batch %d attempt %d failed (%s), retrying in %.1fs",
                        batch.number,
                        attempt + 1,
                        _describe(e),
                        delay,
                    )
                    time.sleep(delay)
                    delay *= 2
                    continue
                raise SubmissionError(
                    batch.number, batch.source, _describe(e), maybe_applied=maybe_applied
                ) from e
            except (KeyError, ValueError) as e:
                # Malformed token or batch response body
                raise SubmissionError(batch.number, batch.source, f"invalid response: {e}") from e
        raise SubmissionError(batch.number, batch.source, "max retries exceeded", maybe_applied=maybe_applied)
