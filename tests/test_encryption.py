"""
Tests for PII encryption and the SSN blind index
"""

import pytest

from bank_ledger.encryption import (
    ENCRYPTION_PREFIX, AESGCMEncryptionProvider, EncryptionConfigError, hash_ssn, is_encrypted
)


KEY = "00" * 32
OTHER_KEY = "11" * 32


class TestAESGCMEncryptionProvider:
    """AES-256-GCM provider"""

    def setup_method(self):
        self.provider = AESGCMEncryptionProvider(KEY)

    def test_encrypt_decrypt(self):
        ciphertext = self.provider.encrypt("123456789")

        assert ciphertext.startswith(ENCRYPTION_PREFIX)
        assert "123456789" not in ciphertext
        assert is_encrypted(ciphertext)
        assert self.provider.decrypt(ciphertext) == "123456789"

    def test_random_nonce(self):
        assert self.provider.encrypt("123456789") != self.provider.encrypt("123456789")

    def test_wrong_key(self):
        ciphertext = self.provider.encrypt("123456789")
        with pytest.raises(ValueError):
            AESGCMEncryptionProvider(OTHER_KEY).decrypt(ciphertext)

    def test_not_encrypted(self):
        assert not is_encrypted("123456789")
        assert not is_encrypted("ENC:")
        with pytest.raises(ValueError):
            self.provider.decrypt("123456789")

    @pytest.mark.parametrize("key", ["", "zz" * 32, "00" * 16])
    def test_bad_keys(self, key):
        with pytest.raises(EncryptionConfigError):
            AESGCMEncryptionProvider(key)


class TestSSNHash:
    """Blind index"""

    def test_deterministic_and_normalized(self):
        assert hash_ssn("123456789", "pepper") == hash_ssn("123-45-6789", "pepper")
        assert hash_ssn("123456789", "pepper") != hash_ssn("123456780", "pepper")

    def test_pepper_matters(self):
        assert hash_ssn("123456789", "pepper") != hash_ssn("123456789", "salt")
