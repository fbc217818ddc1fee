"""
Tests for master key loading and vault configuration.

Tests cover:
- Loading a valid 64-hex-character key from the environment
- Missing and malformed keys
- Key secrecy (repr, pickling, zeroization)
- VaultConfig.from_env and its validation
"""
import pickle

import pytest
from pydantic import ValidationError

from navigator_credentials.vault import (
    ConfigurationError,
    InvalidMasterKeyFormat,
    MasterKey,
    MasterKeyNotFound,
    VaultConfig,
    generate_master_key,
    load_master_key,
)

from .conftest import TEST_KEY_HEX


class TestLoadMasterKey:
    """Tests for load_master_key()."""

    def test_valid_key(self, monkeypatch):
        """Test a 64-character hex key decodes to 32 bytes."""
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", TEST_KEY_HEX)
        key = load_master_key()
        assert bytes(key.material) == bytes.fromhex(TEST_KEY_HEX)

    def test_uppercase_hex_accepted(self, monkeypatch):
        """Test hex digits are case-insensitive."""
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", TEST_KEY_HEX.upper())
        assert len(load_master_key().material) == 32

    def test_missing_key(self, monkeypatch):
        """Test MasterKeyNotFound when the variable is unset."""
        monkeypatch.delenv("CREDENTIALS_MASTER_KEY", raising=False)
        with pytest.raises(MasterKeyNotFound):
            load_master_key()

    def test_empty_key(self, monkeypatch):
        """Test an empty variable counts as missing."""
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", "")
        with pytest.raises(MasterKeyNotFound):
            load_master_key()

    def test_custom_env_var(self, monkeypatch):
        """Test loading from a different variable name."""
        monkeypatch.setenv("OTHER_MASTER_KEY", TEST_KEY_HEX)
        assert len(load_master_key("OTHER_MASTER_KEY").material) == 32

    @pytest.mark.parametrize("value", [
        TEST_KEY_HEX[:-2],          # 62 chars
        TEST_KEY_HEX + "00",        # 66 chars
        "zz" + TEST_KEY_HEX[2:],    # non-hex
        TEST_KEY_HEX[:-1] + " ",    # whitespace
        "0x" + TEST_KEY_HEX[2:],    # prefix
    ])
    def test_invalid_format(self, monkeypatch, value):
        """Test anything but exactly 64 hex characters is rejected."""
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", value)
        with pytest.raises(InvalidMasterKeyFormat):
            load_master_key()

    def test_errors_do_not_echo_key(self, monkeypatch):
        """Test the format error message does not contain the key."""
        bad = TEST_KEY_HEX[:-1]
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", bad)
        with pytest.raises(InvalidMasterKeyFormat) as exc:
            load_master_key()
        assert bad not in str(exc.value)

    def test_configuration_errors_share_base(self):
        """Test both startup errors are ConfigurationError."""
        assert issubclass(MasterKeyNotFound, ConfigurationError)
        assert issubclass(InvalidMasterKeyFormat, ConfigurationError)


class TestMasterKey:
    """Tests for the MasterKey value."""

    def test_wrong_length_bytes(self):
        """Test raw material must be 32 bytes."""
        with pytest.raises(InvalidMasterKeyFormat):
            MasterKey(b"\x00" * 16)

    def test_repr_hides_material(self):
        """Test repr never shows the key."""
        key = MasterKey.from_hex(TEST_KEY_HEX)
        assert TEST_KEY_HEX not in repr(key)
        assert "***" in repr(key)

    def test_cannot_pickle(self):
        """Test the key refuses serialization."""
        key = MasterKey.from_hex(TEST_KEY_HEX)
        with pytest.raises(TypeError):
            pickle.dumps(key)

    def test_clear_zeroes_material(self):
        """Test clear() wipes the key bytes."""
        key = MasterKey.from_hex(TEST_KEY_HEX)
        key.clear()
        assert bytes(key.material) == b"\x00" * 32

    def test_generate_master_key(self):
        """Test generated keys are valid and distinct."""
        first = generate_master_key()
        second = generate_master_key()
        assert len(first) == 64
        assert first != second
        MasterKey.from_hex(first)


class TestVaultConfig:
    """Tests for VaultConfig."""

    def test_from_env_defaults(self, monkeypatch):
        """Test key version defaults to 1."""
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", TEST_KEY_HEX)
        monkeypatch.delenv("CREDENTIALS_KEY_VERSION", raising=False)
        config = VaultConfig.from_env()
        assert config.key_version == 1
        assert config.max_name_length == 255

    def test_from_env_key_version(self, monkeypatch):
        """Test CREDENTIALS_KEY_VERSION is read."""
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", TEST_KEY_HEX)
        monkeypatch.setenv("CREDENTIALS_KEY_VERSION", "3")
        assert VaultConfig.from_env().key_version == 3

    def test_from_env_bad_key_version(self, monkeypatch):
        """Test a non-integer version is a configuration error."""
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", TEST_KEY_HEX)
        monkeypatch.setenv("CREDENTIALS_KEY_VERSION", "two")
        with pytest.raises(ConfigurationError):
            VaultConfig.from_env()

    @pytest.mark.parametrize("value", ["0", "-2"])
    def test_from_env_key_version_below_one(self, monkeypatch, value):
        """Test a version below 1 is a configuration error, not a validation error."""
        monkeypatch.setenv("CREDENTIALS_MASTER_KEY", TEST_KEY_HEX)
        monkeypatch.setenv("CREDENTIALS_KEY_VERSION", value)
        with pytest.raises(ConfigurationError):
            VaultConfig.from_env()

    def test_from_env_missing_key(self, monkeypatch):
        """Test from_env fails fast without a key."""
        monkeypatch.delenv("CREDENTIALS_MASTER_KEY", raising=False)
        with pytest.raises(MasterKeyNotFound):
            VaultConfig.from_env()

    def test_key_version_must_be_positive(self):
        """Test key_version below 1 is rejected."""
        with pytest.raises(ValidationError):
            VaultConfig(master_key=MasterKey.from_hex(TEST_KEY_HEX), key_version=0)
