"""
plexaccess — persistent state for Plex media access management.

Keeps the app secret, the encrypted Plex token, the bound server, the
pending sign-in pin and per-user access records in an embedded,
crash-safe key-value store.

Usage:
    from plexaccess import Store, User, generate_secret

    with Store.open("~/.plexaccess") as store:
        if not store.load_secret():
            store.secret = generate_secret()
            store.save_secret(store.secret)
        store.save_plex_token("plex-token")
        store.save_user(User(plex_user_id="42", name="alice"))
"""

from plexaccess.cipher import generate_secret
from plexaccess.config import StoreConfig
from plexaccess.errors import (
    DecodeError,
    DecryptionError,
    EncodeError,
    EncryptionError,
    EngineError,
    NotFoundError,
    StoreClosedError,
    StoreError,
    StoreLockedError,
    ValidationError,
)
from plexaccess.keys import KeyNamespace
from plexaccess.models import AssignedMedia, PinLocation, PlexPin, Server, User
from plexaccess.store import Store

__version__ = "0.1.0"
__all__ = [
    "Store",
    "StoreConfig",
    "KeyNamespace",
    "User",
    "AssignedMedia",
    "Server",
    "PlexPin",
    "PinLocation",
    "generate_secret",
    "StoreError",
    "NotFoundError",
    "EncryptionError",
    "DecryptionError",
    "EncodeError",
    "DecodeError",
    "ValidationError",
    "EngineError",
    "StoreLockedError",
    "StoreClosedError",
]
