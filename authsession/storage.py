from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from .constants import LOGGER


class KeyValueStore(ABC):
    """String key/value persistence; each ``set``/``delete`` is one write."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, values: dict[str, str]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, values: dict[str, str]) -> None:
        self._values.update(values)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._values.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    async def set(self, values: dict[str, str]) -> None:
        payload = self._read_all()
        payload.update(values)
        self._write_all(payload)

    async def delete(self, *keys: str) -> None:
        payload = self._read_all()
        if not any(key in payload for key in keys):
            return
        for key in keys:
            payload.pop(key, None)
        self._write_all(payload)

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Store file %s is not valid JSON; treating it as empty", self._path)
            return {}
        if not isinstance(raw, dict):
            raise RuntimeError(f"Store file {self._path} is invalid; expected top-level JSON object.")
        return raw

    def _write_all(self, payload: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
