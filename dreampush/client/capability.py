"""Runtime capability detection for push registration.

The capability is computed once at startup from a ``RuntimeInfo`` snapshot
and handed to the registration client, so nothing downstream needs to poke
at the host environment.
"""

import enum
from dataclasses import dataclass
from typing import Optional


class Capability(str, enum.Enum):
    native = "native"
    web = "web"
    unsupported = "unsupported"


@dataclass(frozen=True)
class RuntimeInfo:
    is_native_shell: bool = False
    host_os: Optional[str] = None  # "ios" | "android" inside a native shell
    has_notification_api: bool = False
    has_service_worker: bool = False
    user_agent: Optional[str] = None
    language: Optional[str] = None
    platform: Optional[str] = None


def detect_capability(runtime: RuntimeInfo) -> Capability:
    if runtime.is_native_shell:
        return Capability.native
    if runtime.has_notification_api and runtime.has_service_worker:
        return Capability.web
    return Capability.unsupported


def native_platform(runtime: RuntimeInfo) -> str:
    """Device platform for a native token; anything not iOS is Android."""
    return "ios" if (runtime.host_os or "").lower() == "ios" else "android"
