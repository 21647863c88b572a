"""Import externally generated key material into AWS KMS, use it, retire it."""

from .client import Boto3KeyServiceClient, KeyServiceClient
from .config import WorkflowConfig
from .errors import (
    CapabilityUnsupported,
    DataKeyMismatch,
    KeyDecodeError,
    KmsImportError,
    RemoteCallError,
    RemoteCallTimeout,
    WorkflowError,
    WrapError,
)
from .models import DataKey, ImportParameters, WorkflowResult
from .negotiator import CapabilityNegotiator, Negotiation, TransportProfile, default_negotiation
from .wrapping import decode_public_key, unwrap_key, wrap_key
from .workflow import ImportKeyWorkflow, WorkflowState, run_import_workflow

__version__ = "0.2.0"

__all__ = [
    "Boto3KeyServiceClient",
    "KeyServiceClient",
    "WorkflowConfig",
    "CapabilityUnsupported",
    "DataKeyMismatch",
    "KeyDecodeError",
    "KmsImportError",
    "RemoteCallError",
    "RemoteCallTimeout",
    "WorkflowError",
    "WrapError",
    "DataKey",
    "ImportParameters",
    "WorkflowResult",
    "CapabilityNegotiator",
    "Negotiation",
    "TransportProfile",
    "default_negotiation",
    "decode_public_key",
    "unwrap_key",
    "wrap_key",
    "ImportKeyWorkflow",
    "WorkflowState",
    "run_import_workflow",
]
