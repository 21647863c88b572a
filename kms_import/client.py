"""Async access to the KMS operations the import workflow needs."""
from __future__ import annotations

import abc
import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from .errors import RemoteCallError, RemoteCallTimeout
from .models import DataKey, ImportParameters
from .negotiator import TransportProfile
from .wrapping import WRAPPING_ALGORITHM, WRAPPING_KEY_SPEC

logger = logging.getLogger(__name__)

ORIGIN_EXTERNAL = "EXTERNAL"
EXPIRATION_MODEL = "KEY_MATERIAL_EXPIRES"
DATA_KEY_SPEC = "AES_256"


class KeyServiceClient(abc.ABC):
    """The six key service operations, each awaited by the workflow in turn.

    Implementations must be safe to share between concurrent workflows.
    """

    @abc.abstractmethod
    async def create_key(self, description: str) -> str:
        ...

    @abc.abstractmethod
    async def get_import_parameters(self, key_id: str) -> ImportParameters:
        ...

    @abc.abstractmethod
    async def import_key_material(
        self, key_id: str, encrypted_key_material: bytes, import_token: bytes, valid_to: datetime
    ) -> None:
        ...

    @abc.abstractmethod
    async def generate_data_key(self, key_id: str) -> DataKey:
        ...

    @abc.abstractmethod
    async def decrypt(self, ciphertext_blob: bytes) -> bytes:
        ...

    @abc.abstractmethod
    async def schedule_key_deletion(self, key_id: str, pending_window_days: int) -> datetime:
        ...

    async def close(self) -> None:
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class Boto3KeyServiceClient(KeyServiceClient):
    """KMS through boto3, with every blocking call pushed to an executor.

    The transport profile is fixed when the client is built.
    """

    def __init__(
        self,
        profile: TransportProfile = TransportProfile.BASELINE,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        connect_timeout: float = 10,
        read_timeout: float = 30,
        client=None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._profile = TransportProfile(profile)
        if client is None:
            config = Config(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                user_agent_extra=f"tls-profile/{self._profile.value}",
            )
            client = boto3.client(
                "kms", region_name=region_name, endpoint_url=endpoint_url, config=config
            )
        self._client = client
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="kms-import"
        )
        self._closed = False

    @property
    def profile(self) -> TransportProfile:
        return self._profile

    async def _call(self, operation: str, **params):
        if self._closed:
            raise RemoteCallError(operation, f"{operation} called on a closed client")
        method = getattr(self._client, operation)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, functools.partial(method, **params))
        except (ConnectTimeoutError, ReadTimeoutError) as exc:
            raise RemoteCallTimeout(operation, f"{operation} timed out: {exc}") from exc
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            raise RemoteCallError(operation, f"{operation} failed: {exc}", code=code) from exc
        except BotoCoreError as exc:
            raise RemoteCallError(operation, f"{operation} failed: {exc}") from exc

    async def create_key(self, description: str) -> str:
        response = await self._call(
            "create_key", Origin=ORIGIN_EXTERNAL, Description=description
        )
        return response["KeyMetadata"]["KeyId"]

    async def get_import_parameters(self, key_id: str) -> ImportParameters:
        response = await self._call(
            "get_parameters_for_import",
            KeyId=key_id,
            WrappingAlgorithm=WRAPPING_ALGORITHM,
            WrappingKeySpec=WRAPPING_KEY_SPEC,
        )
        return ImportParameters(
            import_token=response["ImportToken"],
            public_key=response["PublicKey"],
            wrapping_algorithm=WRAPPING_ALGORITHM,
            wrapping_key_spec=WRAPPING_KEY_SPEC,
            valid_to=response.get("ParametersValidTo"),
        )

    async def import_key_material(
        self, key_id: str, encrypted_key_material: bytes, import_token: bytes, valid_to: datetime
    ) -> None:
        await self._call(
            "import_key_material",
            KeyId=key_id,
            EncryptedKeyMaterial=encrypted_key_material,
            ImportToken=import_token,
            ExpirationModel=EXPIRATION_MODEL,
            ValidTo=valid_to,
        )

    async def generate_data_key(self, key_id: str) -> DataKey:
        response = await self._call("generate_data_key", KeyId=key_id, KeySpec=DATA_KEY_SPEC)
        return DataKey(plaintext=response["Plaintext"], ciphertext=response["CiphertextBlob"])

    async def decrypt(self, ciphertext_blob: bytes) -> bytes:
        response = await self._call("decrypt", CiphertextBlob=ciphertext_blob)
        return response["Plaintext"]

    async def schedule_key_deletion(self, key_id: str, pending_window_days: int) -> datetime:
        response = await self._call(
            "schedule_key_deletion", KeyId=key_id, PendingWindowInDays=pending_window_days
        )
        return response["DeletionDate"]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._client.close()
        finally:
            if self._owns_executor:
                self._executor.shutdown(wait=False)
        logger.debug("Closed KMS client")


__all__ = ["KeyServiceClient", "Boto3KeyServiceClient"]
