"""Grouping of bundle entries into fixed-size batches."""

from collections.abc import Iterable, Iterator

from fhir_bulk.errors import ConfigurationError
from fhir_bulk.models.schemas import BatchEntry

DEFAULT_BATCH_SIZE = 25


def validate_batch_size(batch_size: int) -> int:
    """Return ``batch_size`` if it is a positive integer.

    Raises:
        ConfigurationError: For zero, negative or non-integer sizes.
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise ConfigurationError(
            f"number of resources per request must be a positive integer, got {batch_size!r}"
        )
    return batch_size


class BatchAccumulator:
    """Collects entries and releases them in groups of ``batch_size``."""

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        self._batch_size = validate_batch_size(batch_size)
        self._pending: list[BatchEntry] = []

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def pending(self) -> int:
        """Number of entries waiting for the next flush."""
        return len(self._pending)

    def add(self, entry: BatchEntry) -> list[BatchEntry] | None:
        """Add an entry; return a full batch once the threshold is reached."""
        self._pending.append(entry)
        if len(self._pending) == self._batch_size:
            return self._take()
        return None

    def flush(self) -> list[BatchEntry] | None:
        """Return the remaining entries, or None when nothing is pending."""
        if not self._pending:
            return None
        return self._take()

    def batches(self, entries: Iterable[BatchEntry]) -> Iterator[list[BatchEntry]]:
        """Lazily group ``entries``, flushing the remainder at end of input."""
        for entry in entries:
            full = self.add(entry)
            if full is not None:
                yield full
        remainder = self.flush()
        if remainder is not None:
            yield remainder

    def _take(self) -> list[BatchEntry]:
        batch, self._pending = self._pending, []
        return batch
