from .base import ReportDestination, strip_whitespace
from .csv_destination import CsvDestination, expand_separator
from .parquet_destination import ParquetDestination

__all__ = ["ReportDestination", "strip_whitespace", "CsvDestination", "expand_separator", "ParquetDestination"]
