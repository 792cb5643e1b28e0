"""
Durable writer for the metrics document.

Architecture decisions:
  1. orjson for serialization: fast, and it handles the datetime/str keys
     we produce without custom encoders.
  2. Write to a sibling temp file, then os.replace(). Readers polling the
     file never see a half-written document.
  3. Fail-soft. Disk full or permission denied logs an error and
     returns False; the flush cycle carries on.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Union

import orjson

from utils.logger import get_logger

_log = get_logger(__name__)


class JsonFilePersister:
    """Rewrites one JSON file per call."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, record: Mapping[str, Any]) -> bool:
        tmp_path = self._path.with_name(f".{self._path.name}.tmp")
        try:
            payload = orjson.dumps(dict(record), option=orjson.OPT_INDENT_2)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, self._path)
            return True
        except (OSError, orjson.JSONEncodeError) as e:
            _log.error("metrics_write_failed", path=str(self._path), error=str(e))
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                pass
            return False
