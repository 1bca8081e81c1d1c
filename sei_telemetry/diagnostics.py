"""
Log-once helpers for per-extraction diagnostics.

Parsing a clip touches thousands of SEI units; details such as the first
marker found or the first decoded payload are only worth logging once per
file.
"""

import logging
from typing import Set


class LogOnce:
    """
    Emits each keyed message at most once until reset.

    Usage:
        once = LogOnce(logger)
        once.debug("marker", "Found Tesla marker (%d x 0x42 + 0x69)", 4)
        once.reset()  # start of next file
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._seen: Set[str] = set()

    def log(self, level: int, key: str, msg: str, *args) -> bool:
        """Log `msg` under `key` unless already done. Returns True if emitted."""
        if key in self._seen:
            return False
        self._seen.add(key)
        self.logger.log(level, msg, *args)
        return True

    def debug(self, key: str, msg: str, *args) -> bool:
        return self.log(logging.DEBUG, key, msg, *args)

    def info(self, key: str, msg: str, *args) -> bool:
        return self.log(logging.INFO, key, msg, *args)

    def warning(self, key: str, msg: str, *args) -> bool:
        return self.log(logging.WARNING, key, msg, *args)

    def seen(self, key: str) -> bool:
        return key in self._seen

    def reset(self) -> None:
        self._seen.clear()
