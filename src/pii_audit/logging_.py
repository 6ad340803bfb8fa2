"""Logging utilities.

We use Python's standard `logging` module with a plain `time level logger | message` format.
Loggers are named `pii_audit.<area>` so scanning, rule stores and report
decoding can be tuned independently.

- Logs go to: `<log_dir>/<run_id>.log`
- Also prints concise progress to stdout.
"""

from __future__ import annotations
import logging
import os
from datetime import datetime, timezone
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def default_run_id() -> str:
    """Compact UTC timestamp used when no run id is given."""
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


def setup_logging(out_dir: str, run_id: Optional[str] = None, log_dir: Optional[str] = None,
                  level: int = logging.INFO) -> str:
    """
    Setup logging configuration.

    Args:
        out_dir: Output directory (logs go to out_dir/logs unless log_dir is given)
        run_id: Run identifier, used as the log file name
        log_dir: Explicit log directory
        level: Root log level

    Returns:
        Path of the log file
    """
    if log_dir is None:
        log_dir = os.path.join(out_dir, "logs")
    run_id = run_id or default_run_id()

    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, f"{run_id}.log")

    root = logging.getLogger()
    root.setLevel(level)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    # File
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    return log_path
