"""
Result history persistence and share tokens.

History lives under two keys of a small key/value store:
``speedTestHistory`` (JSON array, oldest first, at most ``HISTORY_LIMIT``
entries) and ``lastSpeedTest`` (the most recent result).  The default
backend keeps both in ``~/.speedcheck/storage.json``.

Writes are synchronous and last-write-wins.  A failing backend is logged
and ignored: the in-memory history and the caller's result are unaffected.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from .constants import (
    DEFAULT_SHARE_PATH,
    HISTORY_KEY,
    HISTORY_LIMIT,
    LAST_RESULT_KEY,
    SHARE_FRAGMENT_KEY,
)
from .errors import DecodeFailure, PersistenceFailure
from .models import MeasurementResult

logger = logging.getLogger(__name__)

_DEFAULT_DIR = os.path.join(Path.home(), ".speedcheck")
_DEFAULT_FILE = "storage.json"


def _storage_path() -> str:
    return os.path.join(_DEFAULT_DIR, _DEFAULT_FILE)


# ---------------------------------------------------------------------------
# Storage backends
# ---------------------------------------------------------------------------

class MemoryStorage:
    """Dict-backed storage, for tests and ephemeral runs."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStorage:
    """All keys in one JSON object file, rewritten atomically on every set."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or _storage_path()

    def _load(self) -> Dict[str, str]:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (json.JSONDecodeError, OSError) as exc:
            raise PersistenceFailure(f"cannot read {self.path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        tmp = f"{self.path}.tmp"
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise PersistenceFailure(f"cannot write {self.path}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        try:
            data = self._load()
        except PersistenceFailure:
            data = {}  # corrupt file gets overwritten
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


# ---------------------------------------------------------------------------
# Share tokens
# ---------------------------------------------------------------------------

def encode_share_token(result: MeasurementResult) -> str:
    """base64(JSON(result)).  Convenience encoding only -- not encrypted."""
    raw = json.dumps(result.to_dict(), separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_share_token(token: str) -> Union[MeasurementResult, DecodeFailure]:
    """Inverse of :func:`encode_share_token`; never raises."""
    if not isinstance(token, str) or not token.strip():
        return DecodeFailure("empty share token")

    try:
        raw = base64.b64decode(token.strip(), validate=True)
        data = json.loads(raw.decode("utf-8"))
        return MeasurementResult.from_dict(data)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.debug("Invalid share token: %s", exc)
        return DecodeFailure(f"malformed share token: {exc}")
    except (ValueError, TypeError, OverflowError, RecursionError) as exc:
        logger.debug("Share token has invalid content: %s", exc)
        return DecodeFailure(f"invalid result in share token: {exc}")


def share_link(result: MeasurementResult, origin: str, path: str = DEFAULT_SHARE_PATH) -> str:
    """``<origin><path>#results=<token>``."""
    return f"{origin.rstrip('/')}{path}#{SHARE_FRAGMENT_KEY}{encode_share_token(result)}"


def decode_share_link(link: str) -> Union[MeasurementResult, DecodeFailure]:
    """Accept a full link, a ``#results=...`` fragment or a bare token."""
    if not isinstance(link, str):
        return DecodeFailure("share link must be a string")
    if SHARE_FRAGMENT_KEY in link:
        link = link.split(SHARE_FRAGMENT_KEY, 1)[1]
    return decode_share_token(link)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ResultStore:
    """Bounded FIFO history plus a last-result pointer."""

    def __init__(self, storage=None, limit: int = HISTORY_LIMIT) -> None:  # noqa: ANN001
        self.storage = storage if storage is not None else JsonFileStorage()
        self.limit = limit
        self._history: List[MeasurementResult] = self._load_history()
        self._last: Optional[MeasurementResult] = self._load_last()

    # -- Read ---------------------------------------------------------------

    def history(self) -> List[MeasurementResult]:
        """Stored results, oldest first."""
        return list(self._history)

    @property
    def last_result(self) -> Optional[MeasurementResult]:
        return self._last

    # -- Write --------------------------------------------------------------

    def append(self, result: MeasurementResult) -> None:
        self._history.append(result)
        while len(self._history) > self.limit:
            self._history.pop(0)
        self._last = result
        self._persist()

    def clear(self) -> None:
        self._history = []
        self._last = None
        try:
            self.storage.remove(HISTORY_KEY)
            self.storage.remove(LAST_RESULT_KEY)
        except (PersistenceFailure, OSError) as exc:
            logger.warning("Could not clear saved results: %s", exc)

    # -- Sharing ------------------------------------------------------------

    encode_share_token = staticmethod(encode_share_token)
    decode_share_token = staticmethod(decode_share_token)
    share_link = staticmethod(share_link)
    decode_share_link = staticmethod(decode_share_link)

    # -- Internals ----------------------------------------------------------

    def _persist(self) -> None:
        try:
            self.storage.set(HISTORY_KEY, json.dumps([r.to_dict() for r in self._history]))
            self.storage.set(LAST_RESULT_KEY, json.dumps(self._last.to_dict()))
        except (PersistenceFailure, OSError) as exc:
            logger.warning("Could not save results locally: %s", exc)
            return
        logger.debug("Results saved locally (%d in history)", len(self._history))

    def _read_key(self, key: str) -> Optional[str]:
        try:
            return self.storage.get(key)
        except (PersistenceFailure, OSError) as exc:
            logger.warning("Could not read saved results: %s", exc)
            return None

    def _load_history(self) -> List[MeasurementResult]:
        raw = self._read_key(HISTORY_KEY)
        if not raw:
            return []
        try:
            entries = json.loads(raw)
        except (json.JSONDecodeError, RecursionError):
            logger.warning("Discarding corrupt result history")
            return []
        if not isinstance(entries, list):
            return []

        results: List[MeasurementResult] = []
        for entry in entries:
            try:
                results.append(MeasurementResult.from_dict(entry))
            except (ValueError, TypeError):
                continue  # skip corrupt entries
        return results[-self.limit:]

    def _load_last(self) -> Optional[MeasurementResult]:
        raw = self._read_key(LAST_RESULT_KEY)
        if not raw:
            return self._history[-1] if self._history else None
        try:
            return MeasurementResult.from_dict(json.loads(raw))
        except (ValueError, TypeError, RecursionError):
            return self._history[-1] if self._history else None
