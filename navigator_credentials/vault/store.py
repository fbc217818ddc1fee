"""
CredentialStore: Organization-scoped CRUD over encrypted credentials.

Provides the public API of the Credential Vault:
- ``list(org, user)``: metadata only, never decrypts
- ``create(org, user, name, credential_type, data)``: encrypt and persist
- ``get(org, user, id)`` / ``get_many(org, user, ids)``: decrypt and return
- ``update(org, user, id, name=..., data=...)``: re-encrypt with a fresh nonce
- ``delete(org, user, id)``: hard delete

Each operation authorizes first, then does cipher work in memory, then talks
to the repository. A record is only written once its ciphertext is complete.

Security Note:
    Never log plaintext or ciphertext values. Only log ids, organization ids,
    user ids and operations.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Optional

from .config import VaultConfig
from .crypto import CipherEngine
from .exceptions import CredentialNotFound, InvalidCredentialData
from .guard import AccessGuard, Capability
from .models import (
    Credential,
    CredentialMetadata,
    CredentialRecord,
    new_credential_id,
    utcnow,
)
from .repository import CredentialRepository

logger = logging.getLogger("navigator.credentials")


class _Unset:
    """Marker for a field the caller did not supply."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class CredentialStore:
    """Encrypted credential vault for organizations.

    Args:
        engine: Cipher engine bound to the active master key.
        guard: Authorization backend.
        repository: Persistence collaborator.
        key_version: Version tag recorded on newly encrypted rows.
        max_name_length: Upper bound for ``name`` and ``credential_type``.
    """

    def __init__(
        self,
        engine: CipherEngine,
        guard: AccessGuard,
        repository: CredentialRepository,
        key_version: int = 1,
        max_name_length: int = 255,
    ):
        self._engine = engine
        self._guard = guard
        self._repo = repository
        self._key_version = key_version
        self._max_name_length = max_name_length

    @classmethod
    def from_config(
        cls,
        config: VaultConfig,
        guard: AccessGuard,
        repository: CredentialRepository,
    ) -> "CredentialStore":
        return cls(
            engine=CipherEngine(config.master_key),
            guard=guard,
            repository=repository,
            key_version=config.key_version,
            max_name_length=config.max_name_length,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_label(self, field: str, value: Any) -> str:
        """Validate a credential name or type.

        Raises:
            InvalidCredentialData: If value is not a string, empty, or too long.
        """
        if not isinstance(value, str) or not value.strip():
            raise InvalidCredentialData(f"Credential {field} cannot be empty")
        if len(value) > self._max_name_length:
            raise InvalidCredentialData(
                f"Credential {field} cannot exceed {self._max_name_length} characters"
            )
        return value

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list(
        self, organization_id: str, user_id: str
    ) -> list[CredentialMetadata]:
        """Return metadata for every credential of the organization.

        Raises:
            UserNotInOrganization, PermissionDenied, StorageError
        """
        await self._guard.authorize(user_id, organization_id, Capability.VIEW)
        return await self._repo.list(organization_id)

    async def create(
        self,
        organization_id: str,
        user_id: str,
        name: str,
        credential_type: str,
        data: Any,
    ) -> str:
        """Encrypt ``data`` and persist it as a new credential.

        Returns:
            The new credential id.

        Raises:
            UserNotInOrganization, PermissionDenied, InvalidCredentialData,
            SerializationError, EncryptionError, StorageError
        """
        await self._guard.authorize(user_id, organization_id, Capability.CREATE)
        self._validate_label("name", name)
        self._validate_label("type", credential_type)

        encrypted = self._engine.encrypt(data)
        record = CredentialRecord(
            id=new_credential_id(),
            organization_id=organization_id,
            name=name,
            credential_type=credential_type,
            encrypted_data=encrypted,
            creator_user_id=user_id,
            created_at=utcnow(),
            key_version=self._key_version,
        )
        await self._repo.insert(record)
        logger.debug(
            "Credential created: id=%s org=%s type=%s user=%s",
            record.id, organization_id, credential_type, user_id,
        )
        return record.id

    async def get(
        self, organization_id: str, user_id: str, credential_id: str
    ) -> Credential:
        """Return one credential with its data decrypted.

        Raises:
            UserNotInOrganization, PermissionDenied, CredentialNotFound,
            DecryptionError, StorageError
        """
        await self._guard.authorize(user_id, organization_id, Capability.VIEW)
        record = await self._repo.fetch(organization_id, credential_id)
        if record is None:
            raise CredentialNotFound(credential_id)
        return Credential.from_record(record, self._engine.decrypt(record.encrypted_data))

    async def get_many(
        self,
        organization_id: str,
        user_id: str,
        credential_ids: Sequence[str],
    ) -> list[Credential]:
        """Return several credentials, authorized once for the whole batch.

        Ids that do not exist in the organization are left out. If any record
        fails to decrypt the whole batch fails.

        Raises:
            UserNotInOrganization, PermissionDenied, DecryptionError, StorageError
        """
        await self._guard.authorize(user_id, organization_id, Capability.VIEW)
        wanted = list(dict.fromkeys(credential_ids))
        if not wanted:
            return []
        records = {
            r.id: r for r in await self._repo.fetch_many(organization_id, wanted)
        }
        return [
            Credential.from_record(records[cid], self._engine.decrypt(records[cid].encrypted_data))
            for cid in wanted
            if cid in records
        ]

    async def update(
        self,
        organization_id: str,
        user_id: str,
        credential_id: str,
        *,
        name: Optional[str] = UNSET,
        data: Any = UNSET,
    ) -> None:
        """Replace the data and optionally the name of a credential.

        The data is always re-encrypted under a fresh nonce. When ``data`` is
        not supplied the current value is decrypted and sealed again; when
        ``name`` is not supplied the current name is kept.

        Raises:
            UserNotInOrganization, PermissionDenied, CredentialNotFound,
            InvalidCredentialData, SerializationError, EncryptionError,
            DecryptionError (only when ``data`` is not supplied), StorageError
        """
        await self._guard.authorize(user_id, organization_id, Capability.EDIT)
        if name is not UNSET:
            self._validate_label("name", name)

        if data is UNSET:
            record = await self._repo.fetch(organization_id, credential_id)
            if record is None:
                raise CredentialNotFound(credential_id)
            data = self._engine.decrypt(record.encrypted_data)

        encrypted = self._engine.encrypt(data)
        updated = await self._repo.update(
            organization_id,
            credential_id,
            encrypted_data=encrypted,
            updated_at=utcnow(),
            name=None if name is UNSET else name,
            key_version=self._key_version,
        )
        if not updated:
            raise CredentialNotFound(credential_id)
        logger.debug(
            "Credential updated: id=%s org=%s user=%s",
            credential_id, organization_id, user_id,
        )

    async def delete(
        self, organization_id: str, user_id: str, credential_id: str
    ) -> None:
        """Permanently remove a credential.

        Raises:
            UserNotInOrganization, PermissionDenied, CredentialNotFound, StorageError
        """
        await self._guard.authorize(user_id, organization_id, Capability.DELETE)
        if not await self._repo.delete(organization_id, credential_id):
            raise CredentialNotFound(credential_id)
        logger.debug(
            "Credential deleted: id=%s org=%s user=%s",
            credential_id, organization_id, user_id,
        )
