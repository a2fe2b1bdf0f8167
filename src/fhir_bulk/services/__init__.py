from .batcher import DEFAULT_BATCH_SIZE, BatchAccumulator, validate_batch_size
from .exporter import Exporter, export_file_name
from .line_reader import read_lines
from .normalizer import (
    add_extensions_for_missing_values,
    normalize_line,
    parse_record,
    unsupported_extension,
)
from .submitter import BatchSubmitter

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchAccumulator",
    "BatchSubmitter",
    "Exporter",
    "export_file_name",
    "read_lines",
    "validate_batch_size",
    "add_extensions_for_missing_values",
    "normalize_line",
    "parse_record",
    "unsupported_extension",
]
