from __future__ import annotations


class KmsImportError(Exception):
    """Base exception for the key import workflow.

    ``stage`` and ``key_id`` are filled in by the workflow when the error
    aborts a run, so callers know which transition failed and which remote
    key (if any) still needs cleaning up.
    """

    def __init__(self, message: str = "", *, stage=None, key_id: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.key_id = key_id


class CapabilityUnsupported(KmsImportError):
    """Raised when the hardened transport profile is required but unavailable"""


class KeyDecodeError(KmsImportError):
    """Raised when the wrapping public key is malformed or not RSA"""


class WrapError(KmsImportError):
    """Raised when key material cannot be encrypted to the wrapping key"""


class RemoteCallError(KmsImportError):
    """Raised when a call to the key service fails"""

    def __init__(self, operation: str, message: str = "", *, code: str | None = None, **kwargs) -> None:
        super().__init__(message or f"{operation} failed", **kwargs)
        self.operation = operation
        self.code = code


class RemoteCallTimeout(RemoteCallError, TimeoutError):
    """Raised when a call to the key service times out"""


class DataKeyMismatch(KmsImportError):
    """Raised when a decrypted data key differs from the generated one"""


class WorkflowError(KmsImportError):
    """Raised when a workflow instance is misused"""


__all__ = [
    "KmsImportError",
    "CapabilityUnsupported",
    "KeyDecodeError",
    "WrapError",
    "RemoteCallError",
    "RemoteCallTimeout",
    "DataKeyMismatch",
    "WorkflowError",
]
