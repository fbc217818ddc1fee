"""Navigator Credentials.

Encrypted credential vault for organizations.
"""
from .version import (
    __title__,
    __description__,
    __version__,
    __author__,
    __author_email__,
)
from .vault import (
    CipherEngine,
    CredentialStore,
    VaultConfig,
    load_master_key,
)

__all__ = (
    "CipherEngine",
    "CredentialStore",
    "VaultConfig",
    "load_master_key",
)
