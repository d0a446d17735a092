"""
Errors
Exception hierarchy for the state layer.

Every failure raised by a Store operation derives from StoreError, so
route handlers can catch the whole family or pick out the cases they
care about (typically NotFoundError to drive the UI flow).
"""


class StoreError(Exception):
    """Base class for all state-layer failures."""


class NotFoundError(StoreError):
    """The requested key is absent from the engine."""

    def __init__(self, key: bytes):
        self.key = key
        super().__init__(f"key not found: {key.decode('utf-8', 'replace')}")


class CryptoError(StoreError):
    """Base class for cipher failures."""


class EncryptionError(CryptoError):
    """The plaintext could not be encrypted (usually a bad secret)."""


class DecryptionError(CryptoError):
    """The ciphertext is malformed, tampered with, or under another secret."""


class CodecError(StoreError):
    """Base class for entity serialization failures."""


class EncodeError(CodecError):
    """An in-memory value could not be serialized."""


class DecodeError(CodecError):
    """Stored bytes do not match the expected entity structure."""


class ValidationError(StoreError, ValueError):
    """A precondition on the caller's input failed before any I/O."""


class EngineError(StoreError):
    """The underlying storage engine failed."""


class StoreLockedError(EngineError):
    """Another process already holds the data directory."""


class StoreClosedError(EngineError):
    """The store was used after close()."""
