"""Job-scoped scratch storage (TTLCache-backed registry & dataset key builder)."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

from cachetools import TTLCache

logger = logging.getLogger(__name__)

SCRATCH_STORE_MAXSIZE = int(os.getenv("SCRATCH_STORE_MAXSIZE", "256"))
# Upper bound on how long an undropped store can linger
SCRATCH_STORE_TTL_S = int(os.getenv("SCRATCH_STORE_TTL_S", "3600"))

# Lazy-initialized registry: dataset name -> list of records
_registry: TTLCache | None = None


def get_registry() -> TTLCache:
    global _registry
    if _registry is None:
        _registry = TTLCache(maxsize=SCRATCH_STORE_MAXSIZE, ttl=SCRATCH_STORE_TTL_S)
    return _registry


def build_dataset_key(job_id: str) -> str:
    return f"playlist-{job_id}"


def active_store_count() -> int:
    return len(get_registry())


class ScratchStore:
    """An isolated record list for one crawl job, dropped when the job ends."""

    def __init__(self, name: str, registry: TTLCache):
        self.name = name
        self._registry = registry
        self._dropped = False

    @classmethod
    def open(cls, job_id: str) -> "ScratchStore":
        registry = get_registry()
        name = build_dataset_key(job_id)
        if name in registry:
            raise RuntimeError(f"Scratch store already open: {name}")
        registry[name] = []
        logger.debug(f"[STORE] open {name}")
        return cls(name, registry)

    @property
    def dropped(self) -> bool:
        return self._dropped

    def write(self, record: Dict[str, Any]) -> None:
        if self._dropped:
            raise RuntimeError(f"Scratch store {self.name} has been dropped")
        self._registry.setdefault(self.name, []).append(record)

    def read_all(self) -> List[Dict[str, Any]]:
        if self._dropped:
            raise RuntimeError(f"Scratch store {self.name} has been dropped")
        return list(self._registry.get(self.name, []))

    def drop(self) -> None:
        if self._dropped:
            return
        self._registry.pop(self.name, None)
        self._dropped = True
        logger.debug(f"[STORE] drop {self.name}")


@contextmanager
def scratch_store(job_id: str) -> Iterator[ScratchStore]:
    """Open a store for `job_id` and drop it on every exit path."""
    store = ScratchStore.open(job_id)
    try:
        yield store
    finally:
        store.drop()
