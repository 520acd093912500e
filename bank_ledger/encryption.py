"""
PII Encryption at Rest Module

SSNs are stored AES-256-GCM encrypted, alongside a keyed blind index
(HMAC-SHA256 with a pepper) that lets the users table enforce SSN uniqueness
without ever storing or comparing plaintext.
"""

import os
import base64
import hashlib
import hmac
import re
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


logger = logging.getLogger(__name__)

# Encryption marker prefix
ENCRYPTION_PREFIX = "ENC:"

KEY_LENGTH = 32  # bytes, AES-256
NONCE_LENGTH = 12
TAG_LENGTH = 16


class EncryptionConfigError(Exception):
    """Encryption key missing or malformed"""
    pass


class AESGCMEncryptionProvider:
    """AES-256-GCM encryption provider (authenticated encryption)"""

    def __init__(self, key_hex: str):
        if not key_hex:
            raise EncryptionConfigError(
                "Encryption key is not set. Generate one with: openssl rand -hex 32"
            )
        try:
            key = bytes.fromhex(key_hex)
        except ValueError:
            raise EncryptionConfigError("Encryption key must be hex encoded")
        if len(key) != KEY_LENGTH:
            raise EncryptionConfigError(
                f"Encryption key must be {KEY_LENGTH * 2} hex characters ({KEY_LENGTH} bytes)"
            )
        self.aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext with a random nonce; output is ENC:<base64(nonce|ciphertext|tag)>"""
        nonce = os.urandom(NONCE_LENGTH)
        encrypted_bytes = self.aesgcm.encrypt(nonce, plaintext.encode('utf-8'), None)
        encoded = base64.urlsafe_b64encode(nonce + encrypted_bytes).decode('ascii')
        return f"{ENCRYPTION_PREFIX}{encoded}"

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a value produced by encrypt()"""
        if not is_encrypted(ciphertext):
            raise ValueError("Invalid encrypted data format")

        combined = base64.urlsafe_b64decode(ciphertext[len(ENCRYPTION_PREFIX):].encode('ascii'))
        nonce, encrypted_bytes = combined[:NONCE_LENGTH], combined[NONCE_LENGTH:]
        try:
            return self.aesgcm.decrypt(nonce, encrypted_bytes, None).decode('utf-8')
        except InvalidTag as e:
            logger.error("Failed to decrypt data")
            raise ValueError("Failed to decrypt data") from e


def is_encrypted(value: str) -> bool:
    """Check if a string has the shape produced by AESGCMEncryptionProvider.encrypt"""
    if not isinstance(value, str) or not value.startswith(ENCRYPTION_PREFIX):
        return False
    try:
        combined = base64.urlsafe_b64decode(value[len(ENCRYPTION_PREFIX):].encode('ascii'))
    except ValueError:
        return False
    return len(combined) > NONCE_LENGTH + TAG_LENGTH


def hash_ssn(ssn: str, pepper: str) -> str:
    """Deterministic blind index of an SSN (digits only)"""
    normalized = re.sub(r"\D", "", ssn)
    return hmac.new(pepper.encode('utf-8'), normalized.encode('utf-8'), hashlib.sha256).hexdigest()
