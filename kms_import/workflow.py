"""External key import, exercised once and then scheduled for deletion.

The chain is strictly sequential: every step needs what the previous one
returned, so each call is awaited before the next is issued. A failure
stops the chain where it is; nothing already done on the service side is
rolled back.
"""
from __future__ import annotations

import asyncio
import enum
import hmac
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .client import KeyServiceClient
from .errors import DataKeyMismatch, KmsImportError, RemoteCallError, RemoteCallTimeout, WorkflowError
from .models import ImportParameters, WorkflowResult
from .wrapping import SYMMETRIC_KEY_BYTES, decode_public_key, wrap_key

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Externally generated key imported by kms-import-key"
DEFAULT_IMPORT_WINDOW = timedelta(seconds=600)
DEFAULT_PENDING_WINDOW_DAYS = 7


class WorkflowState(enum.Enum):
    INIT = "init"
    KEY_CREATED = "key-created"
    PARAMS_FETCHED = "params-fetched"
    MATERIAL_WRAPPED = "material-wrapped"
    MATERIAL_IMPORTED = "material-imported"
    DATA_KEY_GENERATED = "data-key-generated"
    DATA_KEY_DECRYPTED = "data-key-decrypted"
    DELETION_SCHEDULED = "deletion-scheduled"
    DONE = "done"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportKeyWorkflow:
    """One run of create, import, use and retire against a key service.

    ``random_bytes`` must be a cryptographically secure source; it is only
    ever asked for the 32 bytes of key material this instance imports.
    """

    def __init__(
        self,
        client: KeyServiceClient,
        random_bytes: Callable[[int], bytes] = os.urandom,
        description: str = DEFAULT_DESCRIPTION,
        import_window: timedelta = DEFAULT_IMPORT_WINDOW,
        pending_window_days: int = DEFAULT_PENDING_WINDOW_DAYS,
        clock: Callable[[], datetime] = _utcnow,
        profile: Optional[str] = None,
    ) -> None:
        self.client = client
        self.random_bytes = random_bytes
        self.description = description
        self.import_window = import_window
        self.pending_window_days = pending_window_days
        self.clock = clock
        self.profile = profile
        self.state = WorkflowState.INIT
        self.key_id: Optional[str] = None
        self._started = False

    async def run(self) -> WorkflowResult:
        if self._started:
            raise WorkflowError("workflow instance already ran", key_id=self.key_id)
        self._started = True
        try:
            return await self._run()
        except asyncio.CancelledError:
            if self.key_id is not None:
                logger.warning(
                    "Workflow cancelled in state %s; CMK %s needs manual cleanup",
                    self.state.name,
                    self.key_id,
                )
            raise

    async def _run(self) -> WorkflowResult:
        key_id = await self._step(
            WorkflowState.KEY_CREATED, "create_key", self.client.create_key(self.description)
        )
        self.key_id = key_id
        self._advance(WorkflowState.KEY_CREATED)
        logger.info("Created CMK %s", key_id)

        params = await self._step(
            WorkflowState.PARAMS_FETCHED,
            "get_import_parameters",
            self.client.get_import_parameters(key_id),
        )
        self._advance(WorkflowState.PARAMS_FETCHED)

        try:
            wrapped, valid_to = self._wrap_material(params)
        except KmsImportError as exc:
            raise self._annotate(exc, WorkflowState.MATERIAL_WRAPPED)
        self._advance(WorkflowState.MATERIAL_WRAPPED)

        await self._step(
            WorkflowState.MATERIAL_IMPORTED,
            "import_key_material",
            self.client.import_key_material(key_id, wrapped, params.import_token, valid_to),
        )
        self._advance(WorkflowState.MATERIAL_IMPORTED)
        logger.info("Imported key material into CMK %s, valid until %s", key_id, valid_to.isoformat())

        data_key = await self._step(
            WorkflowState.DATA_KEY_GENERATED,
            "generate_data_key",
            self.client.generate_data_key(key_id),
        )
        self._advance(WorkflowState.DATA_KEY_GENERATED)

        recovered = await self._step(
            WorkflowState.DATA_KEY_DECRYPTED,
            "decrypt",
            self.client.decrypt(data_key.ciphertext),
        )
        if not hmac.compare_digest(recovered, data_key.plaintext):
            raise self._annotate(
                DataKeyMismatch("decrypted data key differs from the generated one"),
                WorkflowState.DATA_KEY_DECRYPTED,
            )
        del recovered
        self._advance(WorkflowState.DATA_KEY_DECRYPTED)
        ciphertext = data_key.ciphertext
        del data_key

        deletion_date = await self._step(
            WorkflowState.DELETION_SCHEDULED,
            "schedule_key_deletion",
            self.client.schedule_key_deletion(key_id, self.pending_window_days),
        )
        self._advance(WorkflowState.DELETION_SCHEDULED)
        logger.info("CMK %s is scheduled to be deleted at %s", key_id, deletion_date)

        self._advance(WorkflowState.DONE)
        return WorkflowResult(
            key_id=key_id,
            deletion_date=deletion_date,
            data_key_ciphertext=ciphertext,
            profile=self.profile,
        )

    def _wrap_material(self, params: ImportParameters):
        # The plaintext key never leaves this frame; KMS keeps its copy
        # only until valid_to.
        logger.warning(
            "Key material for CMK %s exists only in memory; with imported keys the caller "
            "is responsible for keeping a durable copy, so never rely on this in production",
            self.key_id,
        )
        public_key = decode_public_key(params.public_key)
        secret = self.random_bytes(SYMMETRIC_KEY_BYTES)
        if len(secret) != SYMMETRIC_KEY_BYTES:
            raise WorkflowError(
                f"random source returned {len(secret)} bytes, expected {SYMMETRIC_KEY_BYTES}"
            )
        try:
            wrapped = wrap_key(public_key, secret)
        finally:
            del secret
        return wrapped, self.clock() + self.import_window

    async def _step(self, target: WorkflowState, operation: str, call):
        task = asyncio.ensure_future(call)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            await self._settle(operation, task)
            raise
        except KmsImportError as exc:
            raise self._annotate(exc, target)
        except (TimeoutError, asyncio.TimeoutError) as exc:
            raise self._annotate(RemoteCallTimeout(operation, f"{operation} timed out"), target) from exc
        except Exception as exc:
            raise self._annotate(RemoteCallError(operation, f"{operation} failed: {exc}"), target) from exc

    async def _settle(self, operation: str, task: asyncio.Future) -> None:
        # A request already issued is allowed to finish so that a key it
        # created is not lost.
        await asyncio.wait({task})
        if task.cancelled() or task.exception() is not None:
            return
        if operation == "create_key":
            self.key_id = task.result()
            self._advance(WorkflowState.KEY_CREATED)

    def _annotate(self, exc: KmsImportError, target: WorkflowState) -> KmsImportError:
        exc.stage = target
        exc.key_id = self.key_id
        logger.error(
            "Workflow failed reaching %s from %s (CMK %s): %s",
            target.name,
            self.state.name,
            self.key_id or "not created",
            exc,
        )
        return exc

    def _advance(self, state: WorkflowState) -> None:
        logger.debug("Workflow %s -> %s", self.state.name, state.name)
        self.state = state


async def run_import_workflow(client: KeyServiceClient, **kwargs) -> WorkflowResult:
    return await ImportKeyWorkflow(client, **kwargs).run()


__all__ = [
    "WorkflowState",
    "ImportKeyWorkflow",
    "run_import_workflow",
    "DEFAULT_IMPORT_WINDOW",
    "DEFAULT_PENDING_WINDOW_DAYS",
]
