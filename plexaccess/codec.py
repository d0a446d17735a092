"""
Entity Codec
JSON serialization for the entities kept in the engine.

Field names on disk are the camelCase names the access-management API
has always used (plexUserID, playbackIsStopped, ...). Output is
deterministic: keys are sorted and separators fixed, so equal entities
always encode to equal bytes.

Decoding tolerates unknown fields and fills missing ones with zero
values; anything that is not a JSON object with correctly typed fields
raises DecodeError. Pins are the exception to dropping unknown fields:
plex.tv owns that record, so whatever it sent beyond the known fields is
kept in extra and written back out.
"""

import json

from plexaccess.errors import DecodeError, EncodeError
from plexaccess.models import AssignedMedia, PinLocation, PlexPin, Server, User

# (attribute, json name, type)
MEDIA_FIELDS = [
    ("id", "id", str),
    ("title", "title", str),
    ("status", "status", str),
]

USER_FIELDS = [
    ("plex_user_id", "plexUserID", str),
    ("name", "plexUsername", str),
    ("stopping_playback", "stoppingPlayback", bool),
    ("is_playback_stopped", "playbackIsStopped", bool),
    ("revoke_access", "revokeAccess", bool),
    ("is_friend", "isFriend", bool),
]

SERVER_FIELDS = [
    ("name", "name", str),
    ("url", "url", str),
]

PIN_FIELDS = [
    ("id", "id", int),
    ("code", "code", str),
    ("product", "product", str),
    ("client_identifier", "clientIdentifier", str),
    ("trusted", "trusted", bool),
    ("qr", "qr", str),
    ("expires_in", "expiresIn", int),
    ("created_at", "createdAt", str),
    ("expires_at", "expiresAt", str),
    ("auth_token", "authToken", str),
    ("new_registration", "newRegistration", bool),
]

# plex.tv sends the pin location in snake_case
LOCATION_FIELDS = [
    ("code", "code", str),
    ("european_union_member", "european_union_member", bool),
    ("continent_code", "continent_code", str),
    ("country", "country", str),
    ("city", "city", str),
    ("time_zone", "time_zone", str),
    ("postal_code", "postal_code", str),
    ("in_privacy_restricted_country", "in_privacy_restricted_country", bool),
    ("subdivisions", "subdivisions", str),
    ("coordinates", "coordinates", str),
]

PIN_NAMES = {name for _, name, _ in PIN_FIELDS} | {"location"}
LOCATION_NAMES = {name for _, name, _ in LOCATION_FIELDS}


def _is_type(value, kind: type) -> bool:
    # bool is a subclass of int; keep them apart
    if kind is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, kind)


def _fields_to_dict(obj, fields) -> dict:
    out = {}
    for attr, name, kind in fields:
        value = getattr(obj, attr)
        if not _is_type(value, kind):
            raise EncodeError(
                f"{type(obj).__name__}.{attr} must be {kind.__name__}, "
                f"got {type(value).__name__}"
            )
        out[name] = value
    return out


def _fields_from_dict(data: dict, fields, entity: str) -> dict:
    kwargs = {}
    for attr, name, kind in fields:
        value = data.get(name)
        if value is None:
            continue  # missing or null keeps the zero value
        if not _is_type(value, kind):
            raise DecodeError(f"{entity}.{name} must be {kind.__name__}")
        kwargs[attr] = value
    return kwargs


def _dump(data: dict) -> bytes:
    try:
        text = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"value is not JSON serializable: {exc}") from exc
    return text.encode("utf-8")


def _load(raw: bytes, entity: str) -> dict:
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as exc:
        raise DecodeError(f"{entity} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DecodeError(f"{entity} must be a JSON object")
    return data


def _check(obj, kind: type):
    if not isinstance(obj, kind):
        raise EncodeError(f"expected {kind.__name__}, got {type(obj).__name__}")


def encode_user(user: User) -> bytes:
    _check(user, User)
    _check(user.assigned_media, AssignedMedia)
    data = _fields_to_dict(user, USER_FIELDS)
    data["assignedMedia"] = _fields_to_dict(user.assigned_media, MEDIA_FIELDS)
    return _dump(data)


def decode_user(raw: bytes) -> User:
    data = _load(raw, "user")
    kwargs = _fields_from_dict(data, USER_FIELDS, "user")

    media = data.get("assignedMedia")
    if media is None:
        media = {}
    if not isinstance(media, dict):
        raise DecodeError("user.assignedMedia must be a JSON object")
    kwargs["assigned_media"] = AssignedMedia(
        **_fields_from_dict(media, MEDIA_FIELDS, "assignedMedia")
    )
    kwargs.setdefault("plex_user_id", "")
    return User(**kwargs)


def encode_server(server: Server) -> bytes:
    _check(server, Server)
    return _dump(_fields_to_dict(server, SERVER_FIELDS))


def decode_server(raw: bytes) -> Server:
    data = _load(raw, "server")
    return Server(**_fields_from_dict(data, SERVER_FIELDS, "server"))


def _with_extra(obj, fields, extra_names) -> dict:
    """Known fields over the unknown ones the record arrived with."""
    if not isinstance(obj.extra, dict):
        raise EncodeError(f"{type(obj).__name__}.extra must be dict")
    data = {k: v for k, v in obj.extra.items() if k not in extra_names}
    data.update(_fields_to_dict(obj, fields))
    return data


def _unknown(data: dict, names) -> dict:
    return {k: v for k, v in data.items() if k not in names}


def encode_pin(pin: PlexPin) -> bytes:
    _check(pin, PlexPin)
    _check(pin.location, PinLocation)
    data = _with_extra(pin, PIN_FIELDS, PIN_NAMES)
    data["location"] = _with_extra(pin.location, LOCATION_FIELDS, LOCATION_NAMES)
    return _dump(data)


def decode_pin(raw: bytes) -> PlexPin:
    data = _load(raw, "pin")
    kwargs = _fields_from_dict(data, PIN_FIELDS, "pin")

    location = data.get("location")
    if location is None:
        location = {}
    if not isinstance(location, dict):
        raise DecodeError("pin.location must be a JSON object")
    kwargs["location"] = PinLocation(
        extra=_unknown(location, LOCATION_NAMES),
        **_fields_from_dict(location, LOCATION_FIELDS, "location"),
    )
    kwargs["extra"] = _unknown(data, PIN_NAMES)
    return PlexPin(**kwargs)
