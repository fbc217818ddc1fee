"""Credential records and the projections handed to callers."""
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_credential_id() -> str:
    return str(uuid.uuid4())


class CredentialMetadata(BaseModel):
    """Credential without its secret, safe to list and log."""

    model_config = ConfigDict(frozen=True)

    id: str
    organization_id: str
    name: str
    credential_type: str
    creator_user_id: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    key_version: int = 1


class CredentialRecord(CredentialMetadata):
    """Persisted credential row. ``encrypted_data`` is nonce + ciphertext."""

    encrypted_data: bytes = Field(repr=False)

    def to_metadata(self) -> CredentialMetadata:
        return CredentialMetadata(**self.model_dump(exclude={"encrypted_data"}))


class Credential(CredentialMetadata):
    """Credential with its decrypted data."""

    data: Any = Field(repr=False)

    @classmethod
    def from_record(cls, record: CredentialRecord, data: Any) -> "Credential":
        return cls(**record.model_dump(exclude={"encrypted_data"}), data=data)
