"""
Entities persisted by the store.

User records track which media a Plex account has been granted and
where that account is in the stop-playback / revoke-access workflow.
"""

from dataclasses import dataclass, field


@dataclass
class AssignedMedia:
    """The media title a user has been granted access to."""
    id: str = ""      # Plex rating key
    title: str = ""
    status: str = ""  # watch status reported by the server


@dataclass
class User:
    """A Plex account attached to a media title."""
    plex_user_id: str
    name: str = ""
    assigned_media: AssignedMedia = field(default_factory=AssignedMedia)
    # we are attempting to stop this user's playback
    stopping_playback: bool = False
    is_playback_stopped: bool = False
    revoke_access: bool = False
    # the account is a friend of the server owner
    is_friend: bool = False


@dataclass
class Server:
    """The Plex server this installation is bound to."""
    name: str = ""
    url: str = ""


@dataclass
class PinLocation:
    """Where plex.tv saw the pin request come from."""
    code: str = ""
    european_union_member: bool = False
    continent_code: str = ""
    country: str = ""
    city: str = ""
    time_zone: str = ""
    postal_code: str = ""
    in_privacy_restricted_country: bool = False
    subdivisions: str = ""
    coordinates: str = ""
    extra: dict = field(default_factory=dict)


@dataclass
class PlexPin:
    """
    Pin issued by plex.tv while the owner completes the out-of-band
    sign-in. auth_token stays empty until the pin is claimed.

    The record is kept as plex.tv sent it: fields without an attribute
    here are held in extra and written back on save.
    """
    id: int = 0
    code: str = ""
    product: str = ""
    client_identifier: str = ""
    trusted: bool = False
    qr: str = ""
    location: PinLocation = field(default_factory=PinLocation)
    expires_in: int = 0
    created_at: str = ""
    expires_at: str = ""
    auth_token: str = ""
    new_registration: bool = False
    extra: dict = field(default_factory=dict)
