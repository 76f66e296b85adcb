"""
Credential Encryption Service
=============================

Symmetric encryption for credential payloads stored by the credential service.

Ciphertexts use AES-256-GCM with a fresh 96-bit nonce per call and are encoded
as ``<nonce_hex>:<ciphertext_hex>`` (the GCM tag is appended to the
ciphertext), so every value carries what is needed to decrypt it and any
modification is detected by the tag check.

The 256-bit key is the SHA-256 digest of ``AUTH_ENCRYPTION_KEY``. Keys shorter
than 32 characters are not used at all: the service falls back to a
pass-through mode and records a standing warning instead of truncating or
padding the key.
"""

import hashlib
import logging
import secrets
from typing import List, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from errors import DecryptionError

logger = logging.getLogger(__name__)

MIN_KEY_LENGTH = 32
NONCE_SIZE = 12  # 96 bits, recommended for AES-GCM
SEPARATOR = ":"


class EncryptionService:
    """
    AES-256-GCM cipher for credential payloads.

    When no usable key is configured the service still works, returning data
    unchanged, but ``is_enabled()`` is False and ``warnings`` explains why.
    Callers that expose health information should surface ``warnings``.
    """

    def __init__(self, encryption_key: Optional[str] = None):
        self.warnings: List[str] = []
        self._aesgcm: Optional[AESGCM] = None

        if not encryption_key:
            self._degrade("AUTH_ENCRYPTION_KEY not provided - credential encryption disabled")
        elif len(encryption_key) < MIN_KEY_LENGTH:
            self._degrade(
                f"AUTH_ENCRYPTION_KEY is shorter than {MIN_KEY_LENGTH} characters - "
                "credential encryption disabled"
            )
        else:
            self._aesgcm = AESGCM(hashlib.sha256(encryption_key.encode("utf-8")).digest())

    def _degrade(self, message: str):
        self.warnings.append(message)
        logger.warning(message)

    def is_enabled(self) -> bool:
        """Return True when payloads are actually encrypted."""
        return self._aesgcm is not None

    def encrypt(self, data: str) -> str:
        """
        Encrypt a string payload.

        Args:
            data (str): The plaintext to encrypt

        Returns:
            str: ``<nonce_hex>:<ciphertext_hex>``, or ``data`` unchanged when
                encryption is disabled
        """
        if not self.is_enabled():
            logger.warning("Encryption not enabled - storing data in plain text")
            return data

        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, data.encode("utf-8"), None)
        return nonce.hex() + SEPARATOR + ciphertext.hex()

    def decrypt(self, encrypted_data: str) -> str:
        """
        Decrypt a value produced by ``encrypt``.

        Args:
            encrypted_data (str): ``<nonce_hex>:<ciphertext_hex>``

        Returns:
            str: The plaintext

        Raises:
            DecryptionError: If the value is malformed, was tampered with, or
                was encrypted under a different key
        """
        if not self.is_enabled():
            logger.warning("Encryption not enabled - returning data as-is")
            return encrypted_data

        parts = encrypted_data.split(SEPARATOR)
        if len(parts) != 2:
            raise DecryptionError("Invalid encrypted data format")

        try:
            nonce = bytes.fromhex(parts[0])
            ciphertext = bytes.fromhex(parts[1])
        except ValueError as e:
            raise DecryptionError("Invalid encrypted data encoding") from e

        if len(nonce) != NONCE_SIZE:
            raise DecryptionError("Invalid encrypted data format")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            logger.error("Decryption failed: authentication tag mismatch")
            raise DecryptionError("Decryption failed: data corrupted or encryption key changed") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted data is not valid UTF-8") from e

    @staticmethod
    def generate_key() -> str:
        """Generate a random key suitable for AUTH_ENCRYPTION_KEY."""
        return secrets.token_hex(32)
