"""
Vault Key Rotation: Batch re-encryption of credentials under a new master key.

Re-encrypts every credential sealed under ``old_version`` with the engine of
``new_version``, in batches. Rotated rows leave the ``old_version`` filter, so
the scan only advances past rows that failed; re-running the rotation picks
up whatever is left.

Security Note:
    Plaintext exists in memory only during re-encryption of each row.
    Never log plaintext or ciphertext values.
"""
import logging

from .crypto import CipherEngine
from .exceptions import CryptoError
from .repository import CredentialRepository

logger = logging.getLogger("navigator.credentials")


async def rotate_master_key(
    repository: CredentialRepository,
    old_engine: CipherEngine,
    new_engine: CipherEngine,
    *,
    old_version: int,
    new_version: int,
    batch_size: int = 100,
) -> dict:
    """Re-encrypt all credentials from old_version to new_version in batches.

    Args:
        repository: Credential persistence collaborator.
        old_engine: Engine bound to the master key being retired.
        new_engine: Engine bound to the replacement master key.
        old_version: Key version currently recorded on the rows.
        new_version: Key version to record after re-encryption.
        batch_size: Number of rows to process per batch.

    Returns:
        Stats dict with keys: total, rotated, errors.

    Raises:
        ValueError: If the versions are equal or batch_size is not positive.
        StorageError: If the repository fails; rows already rotated stay rotated.
    """
    if old_version == new_version:
        raise ValueError("old_version and new_version must differ")
    if batch_size < 1:
        raise ValueError("batch_size must be positive")

    stats = {"total": 0, "rotated": 0, "errors": 0}
    offset = 0
    batch_num = 0

    logger.info(
        "Starting credential key rotation from v%d to v%d (batch_size=%d)",
        old_version, new_version, batch_size,
    )

    while True:
        rows = await repository.fetch_batch(old_version, batch_size, offset)
        if not rows:
            break

        batch_num += 1
        logger.info("Processing batch %d (%d rows)", batch_num, len(rows))

        for record in rows:
            stats["total"] += 1
            try:
                data = old_engine.decrypt(record.encrypted_data)
                new_ct = new_engine.encrypt(data)
            except CryptoError as err:
                logger.error(
                    "Error rotating credential id=%s org=%s: %s",
                    record.id, record.organization_id, type(err).__name__,
                )
                stats["errors"] += 1
                offset += 1
                continue
            await repository.replace_encrypted(record.id, new_ct, new_version)
            stats["rotated"] += 1

    logger.info("Credential key rotation complete: %s", stats)
    return stats
