import asyncio
import itertools
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from kms_import.client import KeyServiceClient
from kms_import.models import DataKey, ImportParameters

DATA_KEY_PLAINTEXT = b"\x11" * 32
IMPORT_TOKEN = bytes([0x01, 0x02])


@pytest.fixture(scope="session")
def wrapping_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def wrapping_public_der(wrapping_private_key):
    return wrapping_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class FakeKeyServiceClient(KeyServiceClient):
    """In-memory key service that records every call it receives."""

    def __init__(self, public_key, failures=None, decrypt_plaintext=None):
        self.public_key = public_key
        self.failures = dict(failures or {})
        self.decrypt_plaintext = decrypt_plaintext
        self.calls = []
        self.imported = {}
        self.blocked = {}
        self.entered = {}
        self.closed = False
        self._ids = itertools.count(1)

    def block(self, operation):
        """Make ``operation`` wait until the returned event is set."""
        self.entered[operation] = asyncio.Event()
        self.blocked[operation] = asyncio.Event()
        return self.blocked[operation]

    async def _record(self, operation, **params):
        self.calls.append((operation, params))
        await asyncio.sleep(0)
        if operation in self.blocked:
            self.entered[operation].set()
            await self.blocked[operation].wait()
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

    async def create_key(self, description):
        await self._record("create_key", description=description)
        return f"k-{next(self._ids)}"

    async def get_import_parameters(self, key_id):
        await self._record("get_import_parameters", key_id=key_id)
        return ImportParameters(
            import_token=IMPORT_TOKEN,
            public_key=self.public_key,
            valid_to=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )

    async def import_key_material(self, key_id, encrypted_key_material, import_token, valid_to):
        await self._record(
            "import_key_material",
            key_id=key_id,
            encrypted_key_material=encrypted_key_material,
            import_token=import_token,
            valid_to=valid_to,
        )
        self.imported[key_id] = encrypted_key_material

    async def generate_data_key(self, key_id):
        await self._record("generate_data_key", key_id=key_id)
        return DataKey(plaintext=DATA_KEY_PLAINTEXT, ciphertext=b"blob:" + key_id.encode())

    async def decrypt(self, ciphertext_blob):
        await self._record("decrypt", ciphertext_blob=ciphertext_blob)
        if self.decrypt_plaintext is not None:
            return self.decrypt_plaintext
        return DATA_KEY_PLAINTEXT

    async def schedule_key_deletion(self, key_id, pending_window_days):
        await self._record(
            "schedule_key_deletion", key_id=key_id, pending_window_days=pending_window_days
        )
        return datetime(2030, 1, 1, tzinfo=timezone.utc) + timedelta(days=pending_window_days)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_client(wrapping_public_der):
    def factory(**kwargs):
        kwargs.setdefault("public_key", wrapping_public_der)
        return FakeKeyServiceClient(**kwargs)

    return factory
