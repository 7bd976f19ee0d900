"""Device directory: resolves a user's push tokens."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


@dataclass(frozen=True, slots=True)
class Device:
    """A registered push endpoint."""

    token: str
    platform: str = "unknown"


class DeviceDirectory(Protocol):
    """Lookup of active devices for a user."""

    async def get_devices(self, user_id: str) -> list[Device]: ...


class InMemoryDeviceDirectory:
    """Device directory held in process memory.

    Used when no external registry is wired in, and by tests. Tokens reported
    as failed by the push provider can be removed with ``deactivate``.
    """

    def __init__(self, devices: Mapping[str, Iterable[Device]] | None = None) -> None:
        self._devices: dict[str, list[Device]] = {
            user_id: list(items) for user_id, items in (devices or {}).items()
        }

    def register(self, user_id: str, device: Device) -> None:
        existing = self._devices.setdefault(user_id, [])
        if all(d.token != device.token for d in existing):
            existing.append(device)

    def deactivate(self, tokens: Iterable[str]) -> int:
        """Remove tokens from every user. Returns the number removed."""
        dead = set(tokens)
        removed = 0
        for user_id, items in self._devices.items():
            kept = [d for d in items if d.token not in dead]
            removed += len(items) - len(kept)
            self._devices[user_id] = kept
        return removed

    async def get_devices(self, user_id: str) -> list[Device]:
        return list(self._devices.get(user_id, ()))


_device_directory: InMemoryDeviceDirectory | None = None


def get_device_directory() -> InMemoryDeviceDirectory:
    """Process-wide device directory."""
    global _device_directory
    if _device_directory is None:
        _device_directory = InMemoryDeviceDirectory()
    return _device_directory
