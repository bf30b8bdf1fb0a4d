"""Error kinds for the push delivery pipeline.

Pass-level problems (bad configuration, failed credential exchange, an
unreadable queue) are raised as ``PushPipelineError`` subclasses. The
notification-level kinds (``no_tokens``, ``device_delivery``) are never
raised; they are recorded on dispatch results and written to the queue row.
"""

import enum


class PushErrorKind(str, enum.Enum):
    configuration = "configuration"
    credential_exchange = "credential_exchange"
    no_tokens = "no_tokens"
    device_delivery = "device_delivery"
    storage = "storage"


class PushPipelineError(Exception):
    """Base class for errors that abort a processing pass."""

    kind: PushErrorKind = PushErrorKind.configuration

    def __init__(self, message: str, kind: PushErrorKind | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind.value}


class ConfigurationError(PushPipelineError):
    """Service-account credential missing or malformed."""

    kind = PushErrorKind.configuration


class CredentialExchangeError(PushPipelineError):
    """Token endpoint unreachable or rejected the signed assertion."""

    kind = PushErrorKind.credential_exchange


class StorageError(PushPipelineError):
    """Registry or queue could not be read or written."""

    kind = PushErrorKind.storage
