"""
Cipher
AES-256-GCM envelope encryption for the upstream Plex token.

The app secret is a locally held 256-bit key. The token is encrypted
under it before it ever reaches the engine, so the stored blob alone is
not enough to recover the credential.

Blob layout: nonce (12 bytes) || ciphertext || GCM tag (16 bytes)

GCM is authenticated: a flipped bit, a truncated blob or the wrong secret
fails the tag check instead of decrypting into garbage.
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from plexaccess.errors import DecryptionError, EncryptionError

NONCE_SIZE = 12  # AES-256-GCM standard
TAG_SIZE = 16
KEY_SIZE = 32    # 256 bits


def generate_secret() -> bytes:
    """Generate a random app secret for first-run provisioning."""
    return AESGCM.generate_key(bit_length=256)


def _cipher(secret: bytes) -> AESGCM:
    if not isinstance(secret, (bytes, bytearray)) or len(secret) != KEY_SIZE:
        raise ValueError(f"app secret must be {KEY_SIZE} bytes")
    return AESGCM(bytes(secret))


def encrypt(secret: bytes, plaintext: str) -> bytes:
    """
    Encrypt a string under the app secret.

    Args:
        secret: The 32-byte app secret.
        plaintext: The value to protect (the Plex token).

    Returns:
        nonce || ciphertext, safe to store as an opaque engine value.
    """
    try:
        aesgcm = _cipher(secret)
        data = plaintext.encode("utf-8")
    except (ValueError, TypeError, AttributeError) as exc:
        raise EncryptionError(str(exc)) from exc

    nonce = os.urandom(NONCE_SIZE)
    return nonce + aesgcm.encrypt(nonce, data, None)


def decrypt(secret: bytes, blob: bytes) -> str:
    """
    Decrypt a blob produced by encrypt().

    Raises:
        DecryptionError: the blob is malformed, tampered with, or was
            encrypted under a different secret.
    """
    try:
        aesgcm = _cipher(secret)
    except ValueError as exc:
        raise DecryptionError(str(exc)) from exc

    if len(blob) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionError("ciphertext too short")

    nonce = blob[:NONCE_SIZE]
    ciphertext = blob[NONCE_SIZE:]
    try:
        plaintext = aesgcm.decrypt(nonce, ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionError("ciphertext failed authentication") from exc

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("plaintext is not valid utf-8") from exc
