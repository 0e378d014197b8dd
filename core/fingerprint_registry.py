"""Thread-safe allow-list of historical fingerprints per type identity."""

from __future__ import annotations

from threading import Lock

from core.descriptors import as_fingerprint, identity_of


class FingerprintRegistry:
    """Maps a type identity to fingerprints accepted in place of its current one.

    Writers serialize per identity and publish a fresh tuple; readers take the
    current tuple without locking, so they never see a half-built entry.
    """

    def __init__(self) -> None:
        self._alternates: dict[str, tuple[int, ...]] = {}
        self._locks: dict[str, Lock] = {}
        self._locks_guard = Lock()

    def allow(self, identity: type | str, fingerprint: int | str) -> None:
        """Accept ``fingerprint`` as a compatible historical version of ``identity``."""
        key = identity_of(identity)
        value = as_fingerprint(fingerprint)
        with self._lock_for(key):
            self._alternates[key] = self._alternates.get(key, ()) + (value,)

    def alternates_for(self, identity: type | str) -> frozenset[int]:
        return frozenset(self._alternates.get(identity_of(identity), ()))

    def snapshot(self) -> dict[str, tuple[int, ...]]:
        """Return an insertion-ordered copy of every registered entry."""
        return dict(self._alternates)

    def __contains__(self, identity: object) -> bool:
        if not isinstance(identity, (str, type)):
            return False
        return identity_of(identity) in self._alternates

    def __len__(self) -> int:
        return len(self._alternates)

    def _lock_for(self, key: str) -> Lock:
        lock = self._locks.get(key)
        if lock is None:
            with self._locks_guard:
                lock = self._locks.setdefault(key, Lock())
        return lock
