"""
Vault Exceptions: Typed error taxonomy for the Credential Vault.

Security Note:
    No exception message carries plaintext, ciphertext or key material.
    Only identifiers (credential, organization, user) may appear.
"""


class VaultError(Exception):
    """Base exception for every credential vault failure."""

    retryable: bool = False

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# -- configuration (fatal at startup) --------------------------------------

class ConfigurationError(VaultError):
    """The vault cannot be configured; the process should not serve traffic."""


class MasterKeyNotFound(ConfigurationError):
    """No master key was supplied in the configuration source."""

    def __init__(self, env_var: str = "CREDENTIALS_MASTER_KEY", **kwargs):
        super().__init__(
            f"Master key not found in environment variable {env_var}", **kwargs
        )
        self.env_var = env_var


class InvalidMasterKeyFormat(ConfigurationError):
    """Master key is not 64 hexadecimal characters (32 bytes)."""

    def __init__(self, **kwargs):
        super().__init__(
            "Invalid master key format (must be 64 hex characters for 32-byte key)",
            **kwargs
        )


# -- authorization ----------------------------------------------------------

class AuthorizationError(VaultError):
    """Actor is not allowed to perform the requested operation."""


class UserNotInOrganization(AuthorizationError):
    def __init__(self, user_id: str = "", organization_id: str = "", **kwargs):
        super().__init__("User does not belong to organization", **kwargs)
        self.user_id = user_id
        self.organization_id = organization_id


class PermissionDenied(AuthorizationError):
    def __init__(self, capability: str = "", **kwargs):
        super().__init__("Permission denied", **kwargs)
        self.capability = capability


# -- records -----------------------------------------------------------------

class CredentialNotFound(VaultError):
    """Credential is absent or belongs to another organization."""

    def __init__(self, credential_id: str = "", **kwargs):
        super().__init__(f"Credential not found: {credential_id}", **kwargs)
        self.credential_id = credential_id


class InvalidCredentialData(VaultError):
    """Credential name or type failed validation."""


# -- cryptography -----------------------------------------------------------

class CryptoError(VaultError):
    """Base for non-retryable cryptographic and encoding failures."""


class EncryptionError(CryptoError):
    pass


class DecryptionError(CryptoError):
    """Blob is malformed, tampered with, or was sealed under another key."""

    def __init__(self, **kwargs):
        super().__init__("Decryption failed", **kwargs)


class SerializationError(CryptoError):
    pass


# -- storage -------------------------------------------------------------------

class StorageError(VaultError):
    """The persistence collaborator failed; may be transient."""

    retryable = True
