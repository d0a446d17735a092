"""
Store
Persistent state for the access-management server.

Holds the app secret, the encrypted Plex token, the bound server, the
pending sign-in pin and one record per Plex user, all inside a single
embedded engine. Every method is exactly one engine transaction.

Envelope encryption:
  app secret (32 random bytes, stored raw, cached in memory)
    → AES-256-GCM → Plex token ciphertext (stored)

The plaintext token never touches disk and is never logged.

Batch policy:
  save_users   all-or-nothing; the first failure rolls back the whole call
  delete_users best-effort; a failing id is logged and skipped
"""

from pathlib import Path
from typing import Iterable

from plexaccess import cipher, codec
from plexaccess.config import StoreConfig
from plexaccess.engine import Engine
from plexaccess.errors import EngineError, NotFoundError, StoreError
from plexaccess.keys import DEFAULT_KEYS, KeyNamespace
from plexaccess.log import get_logger
from plexaccess.models import PlexPin, Server, User

log = get_logger(__name__)


class Store:
    """
    Domain-level wrapper around the engine.

    Safe to share between request threads: each call runs in its own
    engine transaction and the engine serializes writers.

    Args:
        config: Where the data lives and how chatty to be.
        keys: Key namespace; the default layout is the on-disk format.
    """

    def __init__(self, config: StoreConfig, keys: KeyNamespace = DEFAULT_KEYS):
        self.config = config
        self.keys = keys
        self.secret = b""

        self._info("checking if our datastore exists at: %s", config.directory)
        if config.directory.exists():
            self._info("datastore exists")
        else:
            self._info("creating directory because it doesn't exist")

        self._engine = Engine.open(config.directory, config.db_filename, config.pragmas)
        self._info("successfully opened data store")

    @classmethod
    def open(cls, directory: str | Path, verbose: bool = False) -> "Store":
        """Open (creating if needed) the store rooted at directory."""
        return cls(StoreConfig(directory=Path(directory), verbose=verbose))

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def closed(self) -> bool:
        return self._engine.closed

    def _info(self, msg: str, *args) -> None:
        if self.config.verbose:
            log.info(msg, *args)

    def close(self) -> bool:
        """
        Close the engine. Safe to call more than once.

        Returns:
            True if this call closed the store, False if it was already
            closed. Close failures are logged, not raised.
        """
        if self._engine.closed:
            log.warning("datastore already closed")
            return False
        try:
            self._engine.close()
        except EngineError as exc:
            log.error("datastore failed to close: %s", exc)
            return True
        self._info("datastore is closed")
        return True

    # -- app secret --------------------------------------------------------

    def get_secret(self) -> bytes:
        """
        Fetch the app secret.

        Returns:
            The secret, or b"" if none has been saved yet. A missing
            secret is the normal first-run state, not an error.
        """
        with self._engine.view() as txn:
            secret = txn.get(self.keys.app_secret)
        return secret if secret is not None else b""

    def save_secret(self, secret: bytes) -> None:
        """Persist the app secret, overwriting any previous one."""
        with self._engine.update() as txn:
            txn.set(self.keys.app_secret, bytes(secret))

    def load_secret(self) -> bytes:
        """Read the stored app secret into memory and return it."""
        self.secret = self.get_secret()
        return self.secret

    # -- plex token --------------------------------------------------------

    def get_plex_token(self) -> str:
        """
        Fetch and decrypt the Plex token with the in-memory secret.

        Raises:
            NotFoundError: no token has been saved.
            DecryptionError: the blob is corrupt or the secret is wrong.
        """
        with self._engine.view() as txn:
            blob = txn.get(self.keys.plex_token)
        if blob is None:
            raise NotFoundError(self.keys.plex_token)

        try:
            token = cipher.decrypt(self.secret, blob)
        except StoreError:
            self._info("token decryption failed")
            raise

        self._info("decrypted plex token (%d chars)", len(token))
        return token

    def save_plex_token(self, token: str) -> None:
        """
        Encrypt the Plex token with the in-memory secret and store it.
        Encryption happens before the transaction opens, so a failure
        leaves the stored token untouched.
        """
        blob = cipher.encrypt(self.secret, token)
        self._info("encrypted plex token (%d bytes)", len(blob))

        with self._engine.update() as txn:
            txn.set(self.keys.plex_token, blob)

        self._info("saved token hash to store")

    # -- plex pin ----------------------------------------------------------

    def get_plex_pin(self) -> PlexPin:
        """Fetch the pending pin. Raises NotFoundError if none is pending."""
        with self._engine.view() as txn:
            raw = txn.get(self.keys.plex_pin)
        if raw is None:
            raise NotFoundError(self.keys.plex_pin)
        return codec.decode_pin(raw)

    def save_plex_pin(self, pin: PlexPin) -> None:
        raw = codec.encode_pin(pin)
        with self._engine.update() as txn:
            txn.set(self.keys.plex_pin, raw)

    def clear_plex_pin(self) -> None:
        """Drop the pending pin; clearing when none is pending is fine."""
        with self._engine.update() as txn:
            txn.delete(self.keys.plex_pin)

    # -- plex server -------------------------------------------------------

    def get_plex_server(self) -> Server:
        with self._engine.view() as txn:
            raw = txn.get(self.keys.plex_server)
        if raw is None:
            raise NotFoundError(self.keys.plex_server)
        return codec.decode_server(raw)

    def save_plex_server(self, server: Server) -> None:
        """Replace the bound server wholesale."""
        raw = codec.encode_server(server)
        with self._engine.update() as txn:
            txn.set(self.keys.plex_server, raw)

    # -- users -------------------------------------------------------------

    def save_user(self, user: User) -> None:
        """Save a user, overwriting any record with the same plex_user_id."""
        with self._engine.update() as txn:
            self._put_user(txn, user)

    def save_users(self, users: Iterable[User]) -> None:
        """
        Save several users in one transaction.

        All-or-nothing: if any record fails to serialize or write, the
        error propagates and none of this call's writes are committed.
        """
        with self._engine.update() as txn:
            for user in users:
                key = self._put_user(txn, user)
                self._info("saveusers key: %s", key.decode("utf-8", "replace"))

    def _put_user(self, txn, user: User) -> bytes:
        raw = codec.encode_user(user)
        key = self.keys.user_key(user.plex_user_id)
        txn.set(key, raw)
        return key

    def get_user(self, plex_user_id: str) -> User:
        """Fetch a user by Plex user id. Raises NotFoundError if absent."""
        key = self.keys.user_key(plex_user_id)
        with self._engine.view() as txn:
            raw = txn.get(key)
        if raw is None:
            raise NotFoundError(key)
        return codec.decode_user(raw)

    def get_all_users(self) -> dict[str, User]:
        """
        Fetch every user attached to media.

        Seeks to the user prefix and walks forward in key order until the
        first key outside the prefix. A record that fails to decode aborts
        the scan with DecodeError.

        Returns:
            Mapping of plex_user_id to User.
        """
        users = {}
        with self._engine.view() as txn:
            for key, raw in txn.seek(self.keys.user_prefix):
                if not self.keys.is_user_key(key):
                    break
                user = codec.decode_user(raw)
                users[user.plex_user_id] = user
        return users

    def delete_user(self, plex_user_id: str) -> None:
        """
        Remove a user. The id is checked before the engine is touched;
        removing an id that is not stored is not an error.

        Raises:
            ValidationError: plex_user_id is empty.
        """
        key = self.keys.user_key(plex_user_id)
        with self._engine.update() as txn:
            txn.delete(key)

    def delete_users(self, plex_user_ids: Iterable[str]) -> None:
        """
        Remove several users in one transaction.

        Best-effort: an id that cannot be deleted is logged and skipped,
        and the remaining deletes still commit. This deliberately differs
        from save_users. If the engine aborts the transaction on a failing
        id, a new one is begun and the deletes made so far are replayed.
        """
        with self._engine.update() as txn:
            deleted = []
            for plex_user_id in plex_user_ids:
                try:
                    key = self.keys.user_key(plex_user_id)
                    txn.delete(key)
                except StoreError as exc:
                    log.warning("failed to delete user id %r: %s", plex_user_id, exc)
                    if not txn.active:
                        # the engine aborted the transaction; redo what it undid
                        txn.restart()
                        for done in deleted:
                            txn.delete(done)
                    continue
                deleted.append(key)
