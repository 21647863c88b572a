from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ImportParameters:
    """What the key service hands back for one import attempt.

    The import token is single use and expires at ``valid_to``.
    """

    import_token: bytes = field(repr=False)
    public_key: bytes = field(repr=False)
    wrapping_algorithm: str = "RSAES_OAEP_SHA_1"
    wrapping_key_spec: str = "RSA_2048"
    valid_to: Optional[datetime] = None


@dataclass(frozen=True)
class DataKey:
    plaintext: bytes = field(repr=False)
    ciphertext: bytes = field(repr=False)


@dataclass(frozen=True)
class WorkflowResult:
    key_id: str
    deletion_date: datetime
    data_key_ciphertext: bytes = field(repr=False)
    profile: Optional[str] = None
