"""Service detection and port allocation."""

from .allocator import DEFAULT_BASE_PORTS, DEFAULT_ZONE_SIZE, PortAllocator, stable_hash
from .detector import ServiceDetector, ServicePatternError, load_service_patterns
from .env import EnvWriter, port_env
from .models import ServiceAssignment, ServiceInfo, ServicePattern

__all__ = [
    "DEFAULT_BASE_PORTS",
    "DEFAULT_ZONE_SIZE",
    "EnvWriter",
    "PortAllocator",
    "ServiceAssignment",
    "ServiceDetector",
    "ServiceInfo",
    "ServicePattern",
    "ServicePatternError",
    "load_service_patterns",
    "port_env",
    "stable_hash",
]
