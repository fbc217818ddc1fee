"""Credential Vault: Encrypted, organization-scoped credential storage.

Security Note (Threat Model):
    Decrypted credential data exists in process memory while a request uses
    it, and the master key lives in process memory for the process lifetime.
    A memory dump of the application process could expose both.
    This is an accepted limitation; mitigation requires HSM/secure
    enclave integration which is out of scope.
"""

from .config import (
    MasterKey,
    VaultConfig,
    load_master_key,
    generate_master_key,
)
from .crypto import CipherEngine
from .exceptions import (
    VaultError,
    ConfigurationError,
    MasterKeyNotFound,
    InvalidMasterKeyFormat,
    AuthorizationError,
    UserNotInOrganization,
    PermissionDenied,
    CredentialNotFound,
    InvalidCredentialData,
    CryptoError,
    EncryptionError,
    DecryptionError,
    SerializationError,
    StorageError,
)
from .guard import AccessGuard, Capability, StaticAccessGuard, DatabaseAccessGuard
from .models import Credential, CredentialMetadata, CredentialRecord
from .repository import (
    CredentialRepository,
    PgCredentialRepository,
    MemoryCredentialRepository,
)
from .store import CredentialStore, UNSET
from .key_rotation import rotate_master_key

__all__ = [
    "MasterKey",
    "VaultConfig",
    "load_master_key",
    "generate_master_key",
    "CipherEngine",
    "VaultError",
    "ConfigurationError",
    "MasterKeyNotFound",
    "InvalidMasterKeyFormat",
    "AuthorizationError",
    "UserNotInOrganization",
    "PermissionDenied",
    "CredentialNotFound",
    "InvalidCredentialData",
    "CryptoError",
    "EncryptionError",
    "DecryptionError",
    "SerializationError",
    "StorageError",
    "AccessGuard",
    "Capability",
    "StaticAccessGuard",
    "DatabaseAccessGuard",
    "Credential",
    "CredentialMetadata",
    "CredentialRecord",
    "CredentialRepository",
    "PgCredentialRepository",
    "MemoryCredentialRepository",
    "CredentialStore",
    "UNSET",
    "rotate_master_key",
]
