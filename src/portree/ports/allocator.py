"""Deterministic hash-based port assignment.

A service type owns a zone of ``zone_size`` ports starting at its base port.
Inside the zone a service lands on ``hash(name) mod zone_size``, shifted by the
worktree ordinal, so the same service in two worktrees gets two different
ports without any central allocation table.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from .models import ServiceAssignment, ServiceInfo

DEFAULT_BASE_PORTS: dict[str, int] = {
    "frontend": 3000,
    "backend": 4000,
    "admin": 5000,
    "api": 5500,
    "unknown": 6000,
}
DEFAULT_ZONE_SIZE = 100
DEFAULT_BASE_PORT = 3000


def stable_hash(value: str) -> int:
    """31-multiplier string hash over UTF-16 code units, as a non-negative int.

    Accumulates modulo 2**32, reads the result as a signed 32-bit integer and
    returns its magnitude. ``stable_hash("frontend-app") == 1308023834``.
    """

    h = 0
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (31 * h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class PortAllocator:
    """Map ``(service name, service type, worktree ordinal)`` to a port."""

    def __init__(
        self,
        base_ports: Mapping[str, int] | None = None,
        *,
        zone_size: int = DEFAULT_ZONE_SIZE,
        max_offset: int | None = None,
        default_base_port: int = DEFAULT_BASE_PORT,
    ) -> None:
        if zone_size < 1:
            raise ValueError("zone_size must be >= 1")
        self._base_ports = dict(DEFAULT_BASE_PORTS if base_ports is None else base_ports)
        self._zone_size = zone_size
        self._max_offset = max_offset
        self._default_base_port = default_base_port

    @property
    def zone_size(self) -> int:
        return self._zone_size

    @property
    def base_ports(self) -> dict[str, int]:
        return dict(self._base_ports)

    def zone_base(self, service_type: str) -> int:
        return self._base_ports.get(service_type, self._default_base_port)

    def assign(self, service_name: str, service_type: str, ordinal: int) -> int:
        zone = self.zone_base(service_type)
        offset_within_zone = self._normalize_offset(ordinal) % self._zone_size
        within_zone = stable_hash(service_name) % self._zone_size
        return zone + (within_zone + offset_within_zone) % self._zone_size

    def assign_all(self, services: Iterable[ServiceInfo], ordinal: int) -> list[ServiceAssignment]:
        return [
            ServiceAssignment(
                service_name=service.name,
                service_type=service.type,
                port=self.assign(service.name, service.type, ordinal),
                location=service.location,
            )
            for service in services
        ]

    def _normalize_offset(self, ordinal: int) -> int:
        # Truncated remainder; a negative ordinal stays negative until the zone wrap.
        if self._max_offset is not None and self._max_offset > 0:
            remainder = abs(ordinal) % self._max_offset
            return remainder if ordinal >= 0 else -remainder
        return ordinal


__all__ = [
    "DEFAULT_BASE_PORT",
    "DEFAULT_BASE_PORTS",
    "DEFAULT_ZONE_SIZE",
    "PortAllocator",
    "stable_hash",
]
