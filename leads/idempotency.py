"""
Idempotency-key store for webhook intake.

Injected into the intake pipeline rather than held as module state. The
in-memory store is process-local: a restart forgets recent keys, and the
persistent duplicate-email check is the backstop.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from config import settings


class DedupStore(ABC):
    """Keys seen recently, each with its own TTL."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Whether ``key`` was marked and has not expired."""
        pass

    @abstractmethod
    def mark(self, key: str, ttl_seconds: Optional[float] = None) -> None:
        """Remember ``key`` for ``ttl_seconds``."""
        pass


class InMemoryDedupStore(DedupStore):
    """Expiring in-memory map for single-instance deployments.

    Expired keys are swept on every ``mark``, so the map holds at most the keys
    marked within one TTL.
    """

    def __init__(
        self,
        default_ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.default_ttl_seconds = (
            default_ttl_seconds
            if default_ttl_seconds is not None
            else settings.idempotency_ttl_seconds
        )
        self._clock = clock
        self._expires_at: Dict[str, float] = {}

    def has(self, key: str) -> bool:
        expires_at = self._expires_at.get(key)
        if expires_at is None:
            return False
        if self._clock() > expires_at:
            del self._expires_at[key]
            return False
        return True

    def mark(self, key: str, ttl_seconds: Optional[float] = None) -> None:
        self.clear_expired()
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        self._expires_at[key] = self._clock() + ttl

    def clear_expired(self) -> int:
        """Drop expired keys. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, expires_at in self._expires_at.items() if now > expires_at]
        for key in expired:
            del self._expires_at[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._expires_at)
