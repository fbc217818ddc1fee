"""
Vault Crypto Core: Authenticated encryption of structured credential data.

Blob format: [nonce 12B][encrypted_payload + GCM_tag 16B]

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
    Decryption failures collapse into a single error kind so callers cannot
    tell a wrong key from corrupted data.
"""
import os
import math
import base64
import binascii
import logging
from typing import Any

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import MasterKey
from .exceptions import DecryptionError, EncryptionError, SerializationError

logger = logging.getLogger("navigator.credentials")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # GCM tag
MIN_BLOB_SIZE = NONCE_SIZE + TAG_SIZE

_BYTES_WRAPPER_KEY = "__vault_bytes_b64__"
# wraps a user dict whose own keys collide with a wrapper key
_ESCAPE_KEY = "__vault_dict__"
_RESERVED_KEYS = frozenset((_BYTES_WRAPPER_KEY, _ESCAPE_KEY))
# datetime, dataclass and str/int subclasses would not decode back to the
# same type, so they are rejected instead of silently coerced.
_DUMPS_OPTIONS = (
    orjson.OPT_SORT_KEYS
    | orjson.OPT_PASSTHROUGH_DATETIME
    | orjson.OPT_PASSTHROUGH_DATACLASS
    | orjson.OPT_PASSTHROUGH_SUBCLASS
)


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def _wrap_bytes(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {_BYTES_WRAPPER_KEY: base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, dict):
        wrapped = {k: _wrap_bytes(v) for k, v in value.items()}
        if _RESERVED_KEYS.intersection(wrapped):
            return {_ESCAPE_KEY: wrapped}
        return wrapped
    if isinstance(value, (list, tuple)):
        return [_wrap_bytes(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        raise SerializationError("Credential data contains a non-finite float")
    return value


def _unwrap_bytes(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and _ESCAPE_KEY in value:
            inner = value[_ESCAPE_KEY]
            if not isinstance(inner, dict):
                raise ValueError("Malformed escaped mapping")
            return {k: _unwrap_bytes(v) for k, v in inner.items()}
        if len(value) == 1 and _BYTES_WRAPPER_KEY in value:
            encoded = value[_BYTES_WRAPPER_KEY]
            if not isinstance(encoded, str):
                raise ValueError("Malformed bytes wrapper")
            return base64.b64decode(encoded, validate=True)
        return {k: _unwrap_bytes(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_unwrap_bytes(v) for v in value]
    return value


def serialize_value(value: Any) -> bytes:
    """Serialize a structured value to canonical bytes for encryption.

    Supports: str, int, float, dict (str keys), list, bytes, bool, None.
    Tuples are stored as lists. bytes values (at any depth) are wrapped as {"__vault_bytes_b64__": "<base64>"}
    for safe JSON round-trip. A dict that itself uses a wrapper key is nested
    under {"__vault_dict__": ...} so it decodes back unchanged. Keys are
    sorted so equal values encode equally.

    Raises:
        SerializationError: value contains a type JSON cannot represent, or a
            NaN or infinite float.
    """
    try:
        return orjson.dumps(_wrap_bytes(value), option=_DUMPS_OPTIONS)
    except orjson.JSONEncodeError as err:
        raise SerializationError(
            f"Credential data is not serializable: {type(err).__name__}"
        ) from None


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by serialize_value.

    Raises:
        orjson.JSONDecodeError: data is not valid JSON.
        ValueError: a bytes wrapper or escaped mapping is malformed.
    """
    return _unwrap_bytes(orjson.loads(data))


# ---------------------------------------------------------------------------
# Cipher engine
# ---------------------------------------------------------------------------

class CipherEngine:
    """AES-256-GCM encryption bound to one master key.

    The engine holds no mutable state after construction; a single instance
    may be shared by every request handler in the process.
    """

    __slots__ = ("_cipher",)

    def __init__(self, master_key: MasterKey):
        self._cipher = AESGCM(bytes(master_key.material))

    def __repr__(self) -> str:
        return "<CipherEngine aes-256-gcm>"

    def encrypt(self, value: Any) -> bytes:
        """Serialize and encrypt a structured value.

        Returns:
            nonce + ciphertext_with_tag.

        Raises:
            SerializationError: value cannot be serialized.
            EncryptionError: the cipher rejected the payload.
        """
        plaintext = serialize_value(value)
        nonce = os.urandom(NONCE_SIZE)
        try:
            ct = self._cipher.encrypt(nonce, plaintext, None)
        except (OverflowError, ValueError) as err:
            raise EncryptionError(
                f"Encryption failed: {type(err).__name__}"
            ) from None
        return nonce + ct

    def decrypt(self, blob: bytes) -> Any:
        """Verify, decrypt and deserialize a blob produced by encrypt.

        Raises:
            DecryptionError: blob too short, tag mismatch (tampered data or
                wrong key), or plaintext is not a serialized value.
        """
        if blob is None or len(blob) < MIN_BLOB_SIZE:
            raise DecryptionError()
        blob = bytes(blob)
        nonce = blob[:NONCE_SIZE]
        ct = blob[NONCE_SIZE:]
        try:
            plaintext = self._cipher.decrypt(nonce, ct, None)
        except InvalidTag:
            raise DecryptionError() from None
        try:
            return deserialize_value(plaintext)
        except (orjson.JSONDecodeError, binascii.Error, TypeError, ValueError):
            raise DecryptionError() from None
