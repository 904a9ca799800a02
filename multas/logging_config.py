"""Logging setup for MULTAs.

Modules log through ``logging.getLogger(__name__)``; this module only wires
handlers onto the ``multas`` parent logger and provides a couple of helpers
for recurring log lines.
"""

import logging
import os
import time
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterator, Optional, Union

from multas.types import SyncResult

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


def setup_multas_logging(
    level: Optional[str] = None,
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Configure the ``multas`` logger.

    Args:
        level: Level name (case-insensitive). Falls back to ``MULTAS_LOG_LEVEL``
            and then INFO.
        log_dir: Directory for a dated ``multas-YYYY-MM-DD.log`` file. Defaults
            to ``$MULTAS_DATA_DIR/logs`` when that variable is set; otherwise
            only the stream handler is installed.

    Returns:
        The configured ``multas`` logger. Calling this again does not add
        duplicate handlers.
    """
    logger = logging.getLogger("multas")
    level_name = (level or os.environ.get("MULTAS_LOG_LEVEL") or "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    formatter = logging.Formatter(LOG_FORMAT)

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    if log_dir is None and os.environ.get("MULTAS_DATA_DIR"):
        log_dir = Path(os.environ["MULTAS_DATA_DIR"]) / "logs"

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        log_file = log_path / f"multas-{date.today().isoformat()}.log"
        already = any(
            isinstance(h, logging.FileHandler)
            and Path(h.baseFilename).resolve() == log_file.resolve()
            for h in logger.handlers
        )
        if not already:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


@contextmanager
def log_timing(logger: logging.Logger, label: str) -> Iterator[None]:
    """Log how long the wrapped block took, at DEBUG."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("%s: %.2fms", label, elapsed_ms)


def log_sync(logger: logging.Logger, result: SyncResult) -> None:
    """Summarize a sync queue drain."""
    if result.errors:
        logger.warning(
            "Sync finished with errors: pushed=%d requeued=%d dropped=%d errors=%s",
            result.pushed,
            result.requeued,
            result.dropped,
            result.errors[:3],
        )
    elif result.pushed:
        logger.info("Synced %d change(s) to the remote mirror", result.pushed)
