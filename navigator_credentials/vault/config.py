"""
Vault Configuration: Master key loading and validated settings.

Reads the master key from the environment:
    CREDENTIALS_MASTER_KEY = <64 hexadecimal characters (32-byte key)>
    CREDENTIALS_KEY_VERSION = <integer, optional, default 1>

Security Note:
    Never log key material. Only log key versions.
"""
import os
import string
import secrets
import logging
import weakref

from pydantic import BaseModel, Field

from .exceptions import (
    ConfigurationError,
    MasterKeyNotFound,
    InvalidMasterKeyFormat,
)

logger = logging.getLogger("navigator.credentials")

MASTER_KEY_ENV = "CREDENTIALS_MASTER_KEY"
KEY_VERSION_ENV = "CREDENTIALS_KEY_VERSION"
KEY_LENGTH = 32  # AES-256
KEY_HEX_LENGTH = KEY_LENGTH * 2

_HEX_DIGITS = frozenset(string.hexdigits)


def _zeroize(buffer: bytearray) -> None:
    for i in range(len(buffer)):
        buffer[i] = 0


class MasterKey:
    """Process-wide 32-byte symmetric key.

    Key bytes live in a private buffer that is zeroed when the object is
    collected or the interpreter exits. The key refuses to be pickled and
    never shows its value in ``repr``.
    """

    __slots__ = ("_material", "_finalizer", "__weakref__")

    def __init__(self, material: bytes):
        if len(material) != KEY_LENGTH:
            raise InvalidMasterKeyFormat()
        self._material = bytearray(material)
        self._finalizer = weakref.finalize(self, _zeroize, self._material)

    @classmethod
    def from_hex(cls, value: str) -> "MasterKey":
        """Build a key from its 64-character hexadecimal form.

        Raises:
            InvalidMasterKeyFormat: wrong length or non-hex characters.
        """
        if len(value) != KEY_HEX_LENGTH or not _HEX_DIGITS.issuperset(value):
            raise InvalidMasterKeyFormat()
        return cls(bytes.fromhex(value))

    @property
    def material(self) -> bytearray:
        return self._material

    def clear(self) -> None:
        """Zero the key bytes now instead of waiting for collection."""
        self._finalizer()

    def __repr__(self) -> str:
        return "<MasterKey ***>"

    def __reduce__(self):
        raise TypeError("MasterKey cannot be serialized")


def load_master_key(env_var: str = MASTER_KEY_ENV) -> MasterKey:
    """Load the master key from an environment variable.

    Returns:
        Validated MasterKey.

    Raises:
        MasterKeyNotFound: If the variable is unset or empty.
        InvalidMasterKeyFormat: If the value is not 64 hex characters.
    """
    raw = os.environ.get(env_var)
    if not raw:
        raise MasterKeyNotFound(env_var)
    key = MasterKey.from_hex(raw)
    logger.debug("Loaded credentials master key from %s", env_var)
    return key


def get_key_version(env_var: str = KEY_VERSION_ENV) -> int:
    """Read the active master key version, defaulting to 1."""
    raw = os.environ.get(env_var)
    if raw is None:
        return 1
    try:
        version = int(raw)
    except ValueError as err:
        raise ConfigurationError(
            f"{env_var} must be an integer"
        ) from err
    if version < 1:
        raise ConfigurationError(f"{env_var} must be 1 or greater")
    return version


def generate_master_key() -> str:
    """Generate a random 32-byte master key and return it as hex.

    This is a utility for operators to generate new keys.
    """
    return secrets.token_hex(KEY_LENGTH)


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    master_key: MasterKey
    key_version: int = Field(default=1, ge=1)
    max_name_length: int = Field(default=255, ge=1, le=255)

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment."""
        return cls(
            master_key=load_master_key(),
            key_version=get_key_version(),
        )
