"""Failure reports: writing (FailureStoreReport + destinations) and re-loading (ReportDecoder)."""

from .decoder import ReportDecoder, deserialize
from .destinations import CsvDestination, ParquetDestination, ReportDestination
from .failure_store import HEADER, SEPARATOR, FailureStoreReport, encode_failure
from .reader import ReportReader
from .repair import html_encode, repair_part, strip_invisible

__all__ = [
    "ReportDecoder",
    "deserialize",
    "CsvDestination",
    "ParquetDestination",
    "ReportDestination",
    "HEADER",
    "SEPARATOR",
    "FailureStoreReport",
    "encode_failure",
    "ReportReader",
    "html_encode",
    "repair_part",
    "strip_invisible",
]
