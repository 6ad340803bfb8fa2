"""Parquet report destination.

All columns are strings; each flushed batch becomes one row group. Useful when
reports are large and are analysed with Arrow tooling rather than re-reviewed.
"""

from __future__ import annotations
import os
from typing import List

import pyarrow as pa
import pyarrow.parquet as pq

from .base import ReportDestination


class ParquetDestination(ReportDestination):
    name = "parquet"

    def __init__(self, path: str, strip_whitespace_on_write: bool = False, compression: str = "zstd"):
        super().__init__(strip_whitespace_on_write)
        self.path = path
        self.compression = compression
        self._schema = None
        self._writer = None

    def _open(self, headers: List[str]) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self._schema = pa.schema([(h, pa.string()) for h in headers], metadata={"schema_version": "v1"})
        self._writer = pq.ParquetWriter(self.path, self._schema, compression=self.compression)

    def _write_rows(self, rows: List[List[str]]) -> None:
        if not rows:
            return
        columns = {name: [r[i] for r in rows] for i, name in enumerate(self._schema.names)}
        self._writer.write_table(pa.Table.from_pydict(columns, schema=self._schema))

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None
