"""Encryption of refresh tokens at rest.

Stored tokens exist in three historical formats. Decoding tries each format in
order until one succeeds:

1. Unencrypted legacy tokens, recognizable by the GitHub refresh token prefix.
2. OpenSSL ``Salted__`` AES-256-CBC with an EVP_BytesToKey (MD5) derived key
   and IV, as written by early versions of the app.
3. The current format: ``base64(iv):base64(ciphertext)``, AES-256-CBC with a
   SHA-256 derived key and a random IV.

All new writes use the current format only. The first two decoders can be
dropped once every stored value has been rotated.
"""

import base64
import hashlib
import logging
import os
from abc import ABC, abstractmethod

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from drafter.errors import CredentialDecryptionError


logger = logging.getLogger(__name__)

KEY_LENGTH = 32  # AES-256
IV_LENGTH = 16  # CBC block size
LEGACY_TOKEN_PREFIX = "ghr_"
OPENSSL_MAGIC = b"Salted__"


def _aes_cbc_decrypt(key: bytes, iv: bytes, ciphertext: bytes) -> str:
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    plaintext = unpadder.update(padded) + unpadder.finalize()
    return plaintext.decode("utf-8")


def _aes_cbc_encrypt(key: bytes, iv: bytes, plaintext: str) -> bytes:
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def derive_key(password: str) -> bytes:
    """Derive a 256-bit key from a password with SHA-256."""
    return hashlib.sha256(password.encode("utf-8")).digest()


def evp_bytes_to_key(password: str, salt: bytes) -> tuple[bytes, bytes]:
    """OpenSSL EVP_BytesToKey with MD5, one iteration.

    Returns:
        Tuple of (key, iv)
    """
    derived = b""
    block = b""
    while len(derived) < KEY_LENGTH + IV_LENGTH:
        block = hashlib.md5(block + password.encode("utf-8") + salt).digest()
        derived += block
    return derived[:KEY_LENGTH], derived[KEY_LENGTH:KEY_LENGTH + IV_LENGTH]


class TokenDecoder(ABC):
    """One historical storage format."""

    name: str = ""

    @abstractmethod
    def decode(self, value: str, password: str) -> str:
        """Decode a stored value.

        Raises:
            ValueError: If the value is not in this format
        """


class PlaintextDecoder(TokenDecoder):
    name = "legacy-plaintext"

    def decode(self, value: str, password: str) -> str:
        if not value.startswith(LEGACY_TOKEN_PREFIX):
            raise ValueError("not a plaintext refresh token")
        return value


class OpenSSLSaltedDecoder(TokenDecoder):
    name = "openssl-salted"

    def decode(self, value: str, password: str) -> str:
        raw = base64.b64decode(value, validate=True)
        if not raw.startswith(OPENSSL_MAGIC):
            raise ValueError("missing Salted__ header")
        salt = raw[len(OPENSSL_MAGIC):len(OPENSSL_MAGIC) + 8]
        key, iv = evp_bytes_to_key(password, salt)
        return _aes_cbc_decrypt(key, iv, raw[len(OPENSSL_MAGIC) + 8:])


class IvPrefixedDecoder(TokenDecoder):
    name = "iv-prefixed"

    def decode(self, value: str, password: str) -> str:
        parts = value.split(":")
        if len(parts) != 2:
            raise ValueError("expected iv:ciphertext")
        iv = base64.b64decode(parts[0], validate=True)
        ciphertext = base64.b64decode(parts[1], validate=True)
        return _aes_cbc_decrypt(derive_key(password), iv, ciphertext)


DEFAULT_DECODERS: tuple[TokenDecoder, ...] = (
    PlaintextDecoder(),
    OpenSSLSaltedDecoder(),
    IvPrefixedDecoder(),
)


class TokenCipher:
    """Encrypts refresh tokens and decodes every historical format."""

    def __init__(self, password: str, decoders: tuple[TokenDecoder, ...] = DEFAULT_DECODERS):
        """Initialize cipher.

        Args:
            password: Secret the encryption key is derived from
            decoders: Decoders tried in order when decrypting
        """
        if not password:
            raise ValueError("A password is required to encrypt tokens")
        self._password = password
        self._decoders = decoders

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a token in the current format."""
        iv = os.urandom(IV_LENGTH)
        ciphertext = _aes_cbc_encrypt(derive_key(self._password), iv, plaintext)
        return (
            base64.b64encode(iv).decode("ascii")
            + ":"
            + base64.b64encode(ciphertext).decode("ascii")
        )

    def decrypt(self, value: str) -> str:
        """Decrypt a stored token, whatever format it was written in.

        Raises:
            CredentialDecryptionError: If no decoder accepts the value
        """
        for decoder in self._decoders:
            try:
                plaintext = decoder.decode(value, self._password)
            except ValueError:
                continue
            logger.debug(f"Decoded stored token using the {decoder.name} format")
            return plaintext
        raise CredentialDecryptionError("Unable to decrypt: unrecognized format")
