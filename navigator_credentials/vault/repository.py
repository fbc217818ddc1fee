"""
Credential Repository: Persistence of opaque encrypted credential rows.

The repository never sees plaintext: it stores and returns ``encrypted_data``
exactly as produced by the cipher engine. Organization scoping is part of
every lookup, so a row from another organization is indistinguishable from a
missing one.

Security Note:
    Never log ``encrypted_data``. Only log ids and organization ids.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from .exceptions import StorageError, VaultError
from .models import CredentialMetadata, CredentialRecord

logger = logging.getLogger("navigator.credentials")


class CredentialRepository(ABC):
    """Storage contract used by the credential store and key rotation."""

    @abstractmethod
    async def list(self, organization_id: str) -> list[CredentialMetadata]:
        """Metadata for every credential of the organization, newest first."""

    @abstractmethod
    async def fetch(
        self, organization_id: str, credential_id: str
    ) -> Optional[CredentialRecord]:
        ...

    @abstractmethod
    async def fetch_many(
        self, organization_id: str, credential_ids: Sequence[str]
    ) -> list[CredentialRecord]:
        ...

    @abstractmethod
    async def insert(self, record: CredentialRecord) -> None:
        ...

    @abstractmethod
    async def update(
        self,
        organization_id: str,
        credential_id: str,
        *,
        encrypted_data: bytes,
        updated_at: datetime,
        name: Optional[str] = None,
        key_version: Optional[int] = None,
    ) -> bool:
        """Overwrite the secret (and optionally the name). False if not found."""

    @abstractmethod
    async def delete(self, organization_id: str, credential_id: str) -> bool:
        """Hard delete. False if not found."""

    @abstractmethod
    async def fetch_batch(
        self, key_version: int, limit: int, offset: int
    ) -> list[CredentialRecord]:
        """Rows sealed under ``key_version``, ordered by id, across organizations."""

    @abstractmethod
    async def replace_encrypted(
        self, credential_id: str, encrypted_data: bytes, key_version: int
    ) -> None:
        ...


# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_METADATA = """
SELECT uuid, organization_uuid, name, type, creator_user_uuid,
       created_at, updated_at, encryption_key_version
FROM credentials
WHERE organization_uuid = $1
ORDER BY created_at DESC
"""

_SELECT_ONE = """
SELECT uuid, organization_uuid, name, type, encrypted_data, creator_user_uuid,
       created_at, updated_at, encryption_key_version
FROM credentials
WHERE uuid = $1 AND organization_uuid = $2
"""

_SELECT_MANY = """
SELECT uuid, organization_uuid, name, type, encrypted_data, creator_user_uuid,
       created_at, updated_at, encryption_key_version
FROM credentials
WHERE organization_uuid = $1 AND uuid = ANY($2::text[])
"""

_INSERT_CREDENTIAL = """
INSERT INTO credentials (uuid, organization_uuid, name, type, encrypted_data,
                         encryption_key_version, creator_user_uuid, created_at)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
"""

_UPDATE_CREDENTIAL = """
UPDATE credentials
SET encrypted_data = $1,
    updated_at = $2,
    name = COALESCE($3, name),
    encryption_key_version = COALESCE($4, encryption_key_version)
WHERE uuid = $5 AND organization_uuid = $6
RETURNING uuid
"""

_DELETE_CREDENTIAL = """
DELETE FROM credentials
WHERE uuid = $1 AND organization_uuid = $2
RETURNING uuid
"""

_SELECT_BATCH = """
SELECT uuid, organization_uuid, name, type, encrypted_data, creator_user_uuid,
       created_at, updated_at, encryption_key_version
FROM credentials
WHERE encryption_key_version = $1
ORDER BY uuid
LIMIT $2
OFFSET $3
"""

_REPLACE_ENCRYPTED = """
UPDATE credentials
SET encrypted_data = $1, encryption_key_version = $2
WHERE uuid = $3
"""


def _metadata_fields(row: Any) -> dict:
    return {
        "id": str(row["uuid"]),
        "organization_id": str(row["organization_uuid"]),
        "name": row["name"],
        "credential_type": row["type"],
        "creator_user_id": str(row["creator_user_uuid"]),
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "key_version": row["encryption_key_version"],
    }


def _to_record(row: Any) -> CredentialRecord:
    return CredentialRecord(
        **_metadata_fields(row), encrypted_data=bytes(row["encrypted_data"])
    )


class PgCredentialRepository(CredentialRepository):
    """Credentials table accessed through an asyncpg-compatible pool.

    Every failure raised by the pool or connection is re-raised as
    ``StorageError`` with the original exception chained.
    """

    def __init__(self, db_pool: Any):
        self._db = db_pool

    @asynccontextmanager
    async def _connection(self, operation: str):
        try:
            async with self._db.acquire() as conn:
                yield conn
        except VaultError:
            raise
        except Exception as err:
            logger.error("Credential storage failure during %s: %s", operation, type(err).__name__)
            raise StorageError(f"Credential storage failure during {operation}") from err

    async def list(self, organization_id: str) -> list[CredentialMetadata]:
        async with self._connection("list") as conn:
            rows = await conn.fetch(_SELECT_METADATA, organization_id)
        return [CredentialMetadata(**_metadata_fields(row)) for row in rows]

    async def fetch(
        self, organization_id: str, credential_id: str
    ) -> Optional[CredentialRecord]:
        async with self._connection("fetch") as conn:
            row = await conn.fetchrow(_SELECT_ONE, credential_id, organization_id)
        return _to_record(row) if row is not None else None

    async def fetch_many(
        self, organization_id: str, credential_ids: Sequence[str]
    ) -> list[CredentialRecord]:
        if not credential_ids:
            return []
        async with self._connection("fetch_many") as conn:
            rows = await conn.fetch(_SELECT_MANY, organization_id, list(credential_ids))
        return [_to_record(row) for row in rows]

    async def insert(self, record: CredentialRecord) -> None:
        async with self._connection("insert") as conn:
            await conn.execute(
                _INSERT_CREDENTIAL,
                record.id,
                record.organization_id,
                record.name,
                record.credential_type,
                record.encrypted_data,
                record.key_version,
                record.creator_user_id,
                record.created_at,
            )

    async def update(
        self,
        organization_id: str,
        credential_id: str,
        *,
        encrypted_data: bytes,
        updated_at: datetime,
        name: Optional[str] = None,
        key_version: Optional[int] = None,
    ) -> bool:
        async with self._connection("update") as conn:
            row = await conn.fetchrow(
                _UPDATE_CREDENTIAL,
                encrypted_data, updated_at, name, key_version,
                credential_id, organization_id,
            )
        return row is not None

    async def delete(self, organization_id: str, credential_id: str) -> bool:
        async with self._connection("delete") as conn:
            row = await conn.fetchrow(_DELETE_CREDENTIAL, credential_id, organization_id)
        return row is not None

    async def fetch_batch(
        self, key_version: int, limit: int, offset: int
    ) -> list[CredentialRecord]:
        async with self._connection("fetch_batch") as conn:
            rows = await conn.fetch(_SELECT_BATCH, key_version, limit, offset)
        return [_to_record(row) for row in rows]

    async def replace_encrypted(
        self, credential_id: str, encrypted_data: bytes, key_version: int
    ) -> None:
        async with self._connection("replace_encrypted") as conn:
            await conn.execute(
                _REPLACE_ENCRYPTED, encrypted_data, key_version, credential_id,
            )


class MemoryCredentialRepository(CredentialRepository):
    """Process-local repository. Each call is atomic under an asyncio lock."""

    def __init__(self):
        self._rows: dict[str, CredentialRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rows)

    def _scoped(self, organization_id: str, credential_id: str) -> Optional[CredentialRecord]:
        record = self._rows.get(credential_id)
        if record is None or record.organization_id != organization_id:
            return None
        return record

    async def list(self, organization_id: str) -> list[CredentialMetadata]:
        async with self._lock:
            # newest insert first, so equal timestamps still list newest first
            records = [
                r for r in reversed(self._rows.values())
                if r.organization_id == organization_id
            ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.to_metadata() for r in records]

    async def fetch(
        self, organization_id: str, credential_id: str
    ) -> Optional[CredentialRecord]:
        async with self._lock:
            return self._scoped(organization_id, credential_id)

    async def fetch_many(
        self, organization_id: str, credential_ids: Sequence[str]
    ) -> list[CredentialRecord]:
        async with self._lock:
            found = (self._scoped(organization_id, cid) for cid in dict.fromkeys(credential_ids))
            return [r for r in found if r is not None]

    async def insert(self, record: CredentialRecord) -> None:
        async with self._lock:
            if record.id in self._rows:
                raise StorageError(f"Duplicate credential id {record.id}")
            self._rows[record.id] = record

    async def update(
        self,
        organization_id: str,
        credential_id: str,
        *,
        encrypted_data: bytes,
        updated_at: datetime,
        name: Optional[str] = None,
        key_version: Optional[int] = None,
    ) -> bool:
        async with self._lock:
            record = self._scoped(organization_id, credential_id)
            if record is None:
                return False
            changes = {"encrypted_data": encrypted_data, "updated_at": updated_at}
            if name is not None:
                changes["name"] = name
            if key_version is not None:
                changes["key_version"] = key_version
            self._rows[credential_id] = record.model_copy(update=changes)
            return True

    async def delete(self, organization_id: str, credential_id: str) -> bool:
        async with self._lock:
            if self._scoped(organization_id, credential_id) is None:
                return False
            del self._rows[credential_id]
            return True

    async def fetch_batch(
        self, key_version: int, limit: int, offset: int
    ) -> list[CredentialRecord]:
        async with self._lock:
            rows = sorted(
                (r for r in self._rows.values() if r.key_version == key_version),
                key=lambda r: r.id,
            )
        return rows[offset:offset + limit]

    async def replace_encrypted(
        self, credential_id: str, encrypted_data: bytes, key_version: int
    ) -> None:
        async with self._lock:
            record = self._rows.get(credential_id)
            if record is not None:
                self._rows[credential_id] = record.model_copy(
                    update={"encrypted_data": encrypted_data, "key_version": key_version}
                )
