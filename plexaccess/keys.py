"""
Key Namespace
Reserved engine keys for every entity the store persists.

Singletons live under fixed keys. Users live under the "user-" prefix
followed by the Plex user id, verbatim:

    app-secret     app secret (raw bytes)
    plex-token     encrypted Plex token
    plex-pin       pending sign-in pin
    plex-server    bound server identity
    user-<id>      one record per Plex user
    users          reserved marker, unused

The id is not escaped, so the layout is only collision free because no
singleton key starts with the user prefix and the user prefix starts with
no singleton key. KeyNamespace checks that when it is built; changing a
prefix to something that overlaps fails loudly instead of letting a
crafted id shadow a singleton.
"""

from dataclasses import dataclass

from plexaccess.errors import ValidationError


@dataclass(frozen=True)
class KeyNamespace:
    """Byte keys for the store's entities."""
    app_secret: bytes = b"app-secret"
    plex_token: bytes = b"plex-token"
    plex_pin: bytes = b"plex-pin"
    plex_server: bytes = b"plex-server"
    user_prefix: bytes = b"user-"
    all_users: bytes = b"users"

    def __post_init__(self):
        singletons = self.singletons()
        if len(set(singletons)) != len(singletons):
            raise ValueError("singleton keys must be distinct")
        if not self.user_prefix:
            raise ValueError("user prefix must be non-empty")
        for key in singletons:
            if key.startswith(self.user_prefix) or self.user_prefix.startswith(key):
                raise ValueError(
                    f"key {key!r} overlaps user prefix {self.user_prefix!r}"
                )

    def singletons(self) -> list[bytes]:
        return [
            self.app_secret,
            self.plex_token,
            self.plex_pin,
            self.plex_server,
            self.all_users,
        ]

    def user_key(self, plex_user_id: str) -> bytes:
        """Key for a user record. Raises ValidationError for an empty or unencodable id."""
        if not isinstance(plex_user_id, str):
            raise ValidationError(
                f"plex user id must be a string, got {type(plex_user_id).__name__}"
            )
        if not plex_user_id:
            raise ValidationError("id is required")
        try:
            encoded = plex_user_id.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValidationError(f"plex user id is not valid unicode: {exc}") from exc
        return self.user_prefix + encoded

    def is_user_key(self, key: bytes) -> bool:
        return key.startswith(self.user_prefix)


DEFAULT_KEYS = KeyNamespace()
