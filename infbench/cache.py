from __future__ import annotations

import gzip
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from infbench.collect import Collection
from infbench.errors import CacheError, InfbenchError
from infbench.history import RunHistory
from infbench.summary import (
    LayerSummary,
    summaries_from_dict,
    summaries_to_dict,
    SummaryTree,
)

logger = logging.getLogger(__name__)

CACHE_VERSION = 1


def composite_key(row: Optional[str], col: Optional[str], layer: Optional[str]) -> str:
    key = f"{row or ''}_{col or ''}_{layer or ''}"
    return key.replace("@", "_").replace("-", "_")


@dataclass
class CacheEntry:
    histories: list[RunHistory]
    algo: str
    algoset: str

    def to_dict(self) -> dict:
        return {
            "history": [h.to_dict() for h in self.histories],
            "algo": self.algo,
            "algoset": self.algoset,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "CacheEntry":
        return cls(
            histories=[RunHistory.from_dict(h) for h in payload.get("history") or []],
            algo=str(payload.get("algo") or ""),
            algoset=str(payload.get("algoset") or ""),
        )

    @classmethod
    def from_collection(cls, collection: Collection) -> "CacheEntry":
        return cls(
            histories=list(collection.histories),
            algo=collection.algo,
            algoset=collection.algoset,
        )


class ResultsCache:
    """Collected run histories and summaries, keyed by composite label."""

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        entries: Optional[dict[str, CacheEntry]] = None,
        summaries: Optional[SummaryTree] = None,
        loaded: bool = False,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.entries: dict[str, CacheEntry] = dict(entries or {})
        self.summaries: SummaryTree = summaries or {}
        self.loaded = loaded

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, key: str) -> Optional[CacheEntry]:
        return self.entries.get(key)

    def put(self, key: str, entry: CacheEntry) -> None:
        self.entries[key] = entry

    def stored_summary(self, f1: str, f2: str, f3: str) -> Optional[LayerSummary]:
        return self.summaries.get(f1, {}).get(f2, {}).get(f3)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ResultsCache":
        """Load a cache file; a missing or corrupt file yields an empty cache."""
        path = Path(path)
        if not path.is_file():
            logger.info("Stored data file does not exist. Loading raw data...")
            return cls(path)
        try:
            payload = _read_payload(path)
            entries = {
                key: CacheEntry.from_dict(value)
                for key, value in (payload.get("data") or {}).items()
            }
            summaries = summaries_from_dict(payload.get("benchdata") or {})
        except (InfbenchError, TypeError, ValueError, KeyError, AttributeError) as exc:
            logger.warning(
                "Could not read stored data file %s (%s). Loading raw data...",
                path,
                exc,
            )
            return cls(path)
        logger.info("Loaded stored data from file.")
        return cls(path, entries=entries, summaries=summaries, loaded=True)

    def save(self, path: Union[str, Path, None] = None) -> Path:
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("No path given for saving the results cache")
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": CACHE_VERSION,
            "data": {key: entry.to_dict() for key, entry in self.entries.items()},
            "benchdata": summaries_to_dict(self.summaries),
        }
        tmp = target.with_name(target.name + ".tmp")
        with gzip.open(tmp, "wt", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
        os.replace(tmp, target)
        logger.info("Saved results cache to %s", target)
        return target


def _read_payload(path: Path) -> dict[str, Any]:
    try:
        with gzip.open(path, "rt", encoding="utf-8") as handle:
            payload = json.load(handle)
    except gzip.BadGzipFile:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            raise CacheError(str(exc)) from exc
    except (OSError, EOFError, UnicodeDecodeError, ValueError) as exc:
        raise CacheError(str(exc)) from exc
    if not isinstance(payload, dict):
        raise CacheError("cache payload is not a mapping")
    return payload
