"""Lazy line reader for NDJSON files."""

import logging
from collections.abc import Iterator
from pathlib import Path

from fhir_bulk.errors import FileAccessError

logger = logging.getLogger(__name__)


def read_lines(path: Path) -> Iterator[tuple[int, str]]:
    """
    Yield the non-blank lines of a file one at a time.

    Line endings (``\\n`` or ``\\r\\n``) are stripped and a leading UTF-8 BOM
    is dropped. Blank lines are skipped but still counted, so the yielded
    numbers are the 1-based physical line numbers of the file.

    Args:
        path: NDJSON file to read.

    Yields:
        (line_number, line) tuples in file order.

    Raises:
        FileAccessError: If the file cannot be opened or read.
    """
    path = Path(path)
    try:
        fh = open(path, "r", encoding="utf-8-sig")
    except OSError as e:
        raise FileAccessError(path, e.strerror or str(e)) from e

    with fh:
        logger.debug("Reading %s", path)
        try:
            for line_number, line in enumerate(fh, start=1):
                line = line.rstrip("\r\n")
                if not line.strip():
                    continue
                yield line_number, line
        except (OSError, UnicodeDecodeError) as e:
            raise FileAccessError(path, str(e)) from e
