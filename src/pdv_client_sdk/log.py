from __future__ import annotations

import json
import logging
import os


def configure_logging(level: str | int | None = None) -> None:
    resolved = level if level is not None else os.getenv("PDV_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=resolved, format="%(message)s")


def log_json(logger: logging.Logger, payload: dict, *, level: int = logging.INFO) -> None:
    if not logger.isEnabledFor(level):
        return
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
