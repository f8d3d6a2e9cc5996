from __future__ import annotations

import logging
from pathlib import Path
from typing import Final


DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
NOISY_LOGGERS: Final[tuple[str, ...]] = ("urllib3",)


def configure_logging(level: int = logging.INFO, log_dir: str | None = None) -> None:
    """Configure timestamped logging for the CLI.

    If log_dir is provided, logs also go to '<log_dir>/run.log' so that the
    decisions of each scan (skipped commits, queued copies) can be audited
    after the fact.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(Path(log_dir) / "run.log", encoding="utf-8"))

    logging.basicConfig(level=level, format=DEFAULT_LOG_FORMAT, handlers=handlers, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
