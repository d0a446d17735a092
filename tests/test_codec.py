"""
Tests for the entity codec and the key namespace.
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from plexaccess.codec import (
    decode_pin,
    decode_server,
    decode_user,
    encode_pin,
    encode_server,
    encode_user,
)
from plexaccess.errors import DecodeError, EncodeError, ValidationError
from plexaccess.keys import DEFAULT_KEYS, KeyNamespace
from plexaccess.models import AssignedMedia, PlexPin, Server, User


def _alice() -> User:
    return User(
        plex_user_id="1234",
        name="alice",
        assigned_media=AssignedMedia(id="5678", title="Alien", status="watching"),
        stopping_playback=True,
        is_playback_stopped=False,
        revoke_access=True,
        is_friend=True,
    )


def test_user_roundtrip():
    """Representative and zero-value users survive encode/decode."""
    print("Testing user round-trip...", end=" ")
    for user in [_alice(), User(plex_user_id="")]:
        assert decode_user(encode_user(user)) == user
    print("PASS")


def test_server_and_pin_roundtrip():
    print("Testing server/pin round-trip...", end=" ")
    for server in [Server(name="living room", url="http://10.0.0.2:32400"), Server()]:
        assert decode_server(encode_server(server)) == server

    pin = PlexPin(
        id=98765,
        code="ABCD",
        client_identifier="client-1",
        trusted=True,
        expires_in=1800,
        created_at="2026-10-18T05:00:00Z",
        expires_at="2026-10-18T05:30:00Z",
        auth_token="",
        new_registration=False,
    )
    for p in [pin, PlexPin()]:
        assert decode_pin(encode_pin(p)) == p
    print("PASS")


def test_wire_field_names():
    """Records use the camelCase names the API has always stored."""
    print("Testing wire field names...", end=" ")
    data = json.loads(encode_user(_alice()))
    assert data["plexUserID"] == "1234"
    assert data["plexUsername"] == "alice"
    assert data["playbackIsStopped"] is False
    assert data["assignedMedia"] == {"id": "5678", "title": "Alien", "status": "watching"}

    pin = json.loads(encode_pin(PlexPin(id=1, client_identifier="c")))
    assert pin["clientIdentifier"] == "c"
    print("PASS")


def test_encoding_is_deterministic():
    print("Testing deterministic encoding...", end=" ")
    assert encode_user(_alice()) == encode_user(_alice())
    print("PASS")


def test_decode_tolerates_unknown_and_missing_fields():
    print("Testing unknown/missing fields...", end=" ")
    raw = json.dumps({
        "plexUserID": "7",
        "plexUsername": "bob",
        "somethingNew": {"nested": 1},
        "assignedMedia": None,
    }).encode()
    user = decode_user(raw)
    assert user == User(plex_user_id="7", name="bob")

    server = decode_server(b'{"name": "box", "extra": true}')
    assert server == Server(name="box", url="")
    print("PASS")


def test_decode_rejects_invalid_structure():
    print("Testing invalid structure...", end=" ")
    bad_inputs = [
        b"not json",
        b"[1, 2, 3]",
        b'"a string"',
        b'{"plexUserID": 42}',
        b'{"revokeAccess": "yes"}',
        b'{"assignedMedia": "Alien"}',
        b"\xff\xfe",
    ]
    for raw in bad_inputs:
        try:
            decode_user(raw)
            raise AssertionError(f"should have raised DecodeError for {raw!r}")
        except DecodeError:
            pass

    try:
        decode_pin(b'{"id": true}')
        raise AssertionError("bool is not an int pin id")
    except DecodeError:
        pass
    print("PASS")


def test_encode_rejects_malformed_values():
    print("Testing malformed values...", end=" ")
    for value in ["not-a-user", User(plex_user_id="1", name=object()),
                  User(plex_user_id="1", assigned_media=None)]:
        try:
            encode_user(value)
            raise AssertionError(f"should have raised EncodeError for {value!r}")
        except EncodeError:
            pass
    try:
        encode_server({"name": "x"})
        raise AssertionError("dict is not a Server")
    except EncodeError:
        pass
    print("PASS")


def test_user_keys():
    print("Testing user keys...", end=" ")
    assert DEFAULT_KEYS.user_key("1234") == b"user-1234"
    assert DEFAULT_KEYS.is_user_key(b"user-1234")
    for key in DEFAULT_KEYS.singletons():
        assert not DEFAULT_KEYS.is_user_key(key)

    try:
        DEFAULT_KEYS.user_key("")
        raise AssertionError("empty id should be rejected")
    except ValidationError:
        pass
    print("PASS")


def test_overlapping_prefix_rejected():
    """A namespace where a singleton could be shadowed by a user id is refused."""
    print("Testing overlapping prefixes...", end=" ")
    for kwargs in [
        {"user_prefix": b"plex-"},       # user id "token" would hit plex-token
        {"plex_server": b"user-server"},  # user id "server" would hit it
        {"plex_pin": b"plex-token"},
    ]:
        try:
            KeyNamespace(**kwargs)
            raise AssertionError(f"should have rejected {kwargs}")
        except ValueError:
            pass
    print("PASS")


def test_pin_keeps_plex_tv_payload():
    """A pin as plex.tv returns it survives load and save with nothing dropped."""
    print("Testing plex.tv pin payload...", end=" ")
    payload = {
        "id": 2150735629,
        "code": "7k4mzq2vbe9xw1nh3cgt8rja",
        "product": "Plex Web",
        "trusted": False,
        "qr": "https://plex.tv/api/v2/pins/qr/7k4mzq2vbe9xw1nh3cgt8rja",
        "clientIdentifier": "b3f1c2d4-plexaccess",
        "location": {
            "code": "US",
            "european_union_member": False,
            "continent_code": "NA",
            "country": "United States",
            "city": "Portland",
            "time_zone": "America/Los_Angeles",
            "postal_code": "97201",
            "in_privacy_restricted_country": False,
            "subdivisions": "Oregon",
            "coordinates": "45.5075, -122.6901",
            "asn": 7922,
        },
        "expiresIn": 1800,
        "createdAt": "2026-10-18T09:12:44Z",
        "expiresAt": "2026-10-18T09:42:44Z",
        "authToken": None,
        "newRegistration": None,
        "requestedScopes": ["download"],
    }
    pin = decode_pin(json.dumps(payload).encode())
    assert pin.product == "Plex Web"
    assert pin.qr == payload["qr"]
    assert pin.location.city == "Portland"
    assert pin.location.time_zone == "America/Los_Angeles"
    assert pin.location.extra == {"asn": 7922}
    assert pin.extra == {"requestedScopes": ["download"]}

    out = json.loads(encode_pin(pin))
    assert out["location"] == payload["location"]
    assert out["requestedScopes"] == ["download"]
    assert out["product"] == "Plex Web"
    assert decode_pin(encode_pin(pin)) == pin

    # known fields win over a stale copy in extra
    pin.extra["code"] = "stale"
    assert json.loads(encode_pin(pin))["code"] == payload["code"]

    for bad in [PlexPin(location=None), PlexPin(extra={"x": object()})]:
        try:
            encode_pin(bad)
            raise AssertionError(f"should have raised EncodeError for {bad!r}")
        except EncodeError:
            pass
    try:
        decode_pin(b'{"location": "Portland"}')
        raise AssertionError("location must be an object")
    except DecodeError:
        pass
    print("PASS")


def test_user_key_rejects_lone_surrogate():
    print("Testing unencodable user id...", end=" ")
    try:
        DEFAULT_KEYS.user_key("\ud800")
        raise AssertionError("lone surrogate should be rejected")
    except ValidationError:
        pass
    assert DEFAULT_KEYS.user_key("é") == b"user-\xc3\xa9"
    print("PASS")


def main():
    tests = [
        test_user_roundtrip,
        test_server_and_pin_roundtrip,
        test_wire_field_names,
        test_encoding_is_deterministic,
        test_decode_tolerates_unknown_and_missing_fields,
        test_decode_rejects_invalid_structure,
        test_encode_rejects_malformed_values,
        test_user_keys,
        test_overlapping_prefix_rejected,
        test_pin_keeps_plex_tv_payload,
        test_user_key_rejects_lone_surrogate,
    ]
    failed = 0
    for test in tests:
        try:
            test()
        except Exception as e:
            print(f"FAIL: {e}")
            failed += 1
    print(f"\nResults: {len(tests) - failed} passed, {failed} failed")
    return failed == 0


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
