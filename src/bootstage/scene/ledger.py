"""Spawned-instances ledger."""

from __future__ import annotations

from collections.abc import Iterator

from bootstage.scene.scene import UnitInstance


class SpawnLedger:
    """Append-only record of instances created by one orchestrator, in creation order."""

    def __init__(self) -> None:
        self._entries: list[UnitInstance] = []

    def record(self, instance: UnitInstance) -> None:
        self._entries.append(instance)

    @property
    def entries(self) -> tuple[UnitInstance, ...]:
        return tuple(self._entries)

    def newest_first(self) -> Iterator[UnitInstance]:
        """Snapshot iteration in strict reverse creation order."""
        return reversed(tuple(self._entries))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[UnitInstance]:
        return iter(tuple(self._entries))
