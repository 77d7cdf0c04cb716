from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
RUN_LOG_FILENAME = "expr_pca.log"


def resolve_level(level: int | str | None, default: int = logging.INFO) -> int:
    """``"debug"``, ``"INFO"``, ``10`` ... -> logging level number."""
    if level is None:
        return default
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else default


def init_global_logging(level: int | str = logging.INFO) -> None:
    """
    Root logger at ``level`` with one terminal handler.
    Calling it again only updates the level.
    """
    root = logging.getLogger()
    root.setLevel(resolve_level(level))

    has_stream = any(
        type(h) is logging.StreamHandler for h in root.handlers
    )
    if not has_stream:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        root.addHandler(stream_handler)


@contextmanager
def run_logging(output_dir: str | Path,
                level: int | str | None = None,
                filename: str = RUN_LOG_FILENAME) -> Iterator[Path]:
    """
    Copy everything logged during an analysis run to ``output_dir/filename``.

    The file is appended to, so consecutive runs into the same directory share
    one log. The handler is removed and closed on exit, even on error.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    log_path = output_dir / filename

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.setLevel(resolve_level(level, default=logging.NOTSET))

    root = logging.getLogger()
    root.addHandler(handler)
    root.info(f"Run log: {log_path}")
    try:
        yield log_path
    finally:
        root.removeHandler(handler)
        handler.close()
