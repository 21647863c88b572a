"""Pick the TLS profile used for every call to the key service.

Support for the post-quantum cipher preference is asked of the AWS CRT,
the same TLS stack the KMS SDKs use for hybrid key exchange. The profile
is advisory for the boto3 client: BASELINE does not disable a hybrid group
that the linked OpenSSL offers on its own.
"""
from __future__ import annotations

import enum
import functools
from dataclasses import dataclass
from typing import Callable, Optional

from awscrt.io import TlsCipherPref

from .errors import CapabilityUnsupported


class TransportProfile(str, enum.Enum):
    STRONGEST_AVAILABLE = "strongest-available"
    BASELINE = "baseline"


@dataclass(frozen=True)
class Negotiation:
    profile: TransportProfile
    reason: str
    hardened_supported: bool


def platform_supports_hybrid_kex() -> bool:
    return bool(TlsCipherPref.PQ_DEFAULT.is_supported())


class CapabilityNegotiator:
    """Choose between the hardened and the baseline transport profile.

    In the default mode a missing capability is a normal outcome and the
    baseline profile is returned. With ``strict=True`` it raises
    :class:`CapabilityUnsupported` instead.
    """

    def __init__(self, probe: Optional[Callable[[], bool]] = None, strict: bool = False) -> None:
        self.probe = probe or platform_supports_hybrid_kex
        self.strict = strict

    def negotiate(self) -> Negotiation:
        # Probing is advisory: whatever goes wrong counts as "not supported".
        try:
            supported = bool(self.probe())
            detail = "" if supported else "the TLS library reports no post-quantum cipher preference"
        except Exception as exc:
            supported = False
            detail = f"capability probe failed: {exc!r}"

        if supported:
            return Negotiation(
                profile=TransportProfile.STRONGEST_AVAILABLE,
                reason="Post-quantum ciphers are supported and will be preferred",
                hardened_supported=True,
            )
        if self.strict:
            raise CapabilityUnsupported(f"Post-quantum TLS required but unavailable: {detail}")
        return Negotiation(
            profile=TransportProfile.BASELINE,
            reason=(
                f"Post-quantum TLS is not supported ({detail}), falling back to classic cipher "
                "suites; a hybrid key exchange offered by the system OpenSSL is not switched off"
            ),
            hardened_supported=False,
        )

    def select_profile(self) -> TransportProfile:
        return self.negotiate().profile


@functools.lru_cache(maxsize=None)
def default_negotiation(strict: bool = False) -> Negotiation:
    """Negotiate once per process with the platform probe."""
    return CapabilityNegotiator(strict=strict).negotiate()


__all__ = [
    "TransportProfile",
    "Negotiation",
    "CapabilityNegotiator",
    "platform_supports_hybrid_kex",
    "default_negotiation",
]
