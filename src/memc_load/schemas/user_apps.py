"""
UserApps wire payload.

MessagePack map with ``apps`` and optional ``lat``/``lon``. Absent
coordinates are omitted from the map entirely, so a reader can tell "no
coordinates" from ``0.0``. Field order is fixed, so identical input always
produces identical bytes.
"""

from typing import Annotated

import msgspec

UInt32 = Annotated[int, msgspec.Meta(ge=0, le=2**32 - 1)]


class UserApps(msgspec.Struct, omit_defaults=True, frozen=True):
    apps: list[UInt32] = []
    lat: float | None = None
    lon: float | None = None


_encoder = msgspec.msgpack.Encoder()
_decoder = msgspec.msgpack.Decoder(UserApps)


def encode_user_apps(apps: list[int], lat: float | None, lon: float | None) -> bytes:
    """Serialize one record.

    Raises:
        msgspec.EncodeError, OverflowError: If a value cannot be represented
    """
    return _encoder.encode(UserApps(apps=list(apps), lat=lat, lon=lon))


def decode_user_apps(payload: bytes) -> UserApps:
    """Deserialize one record.

    Raises:
        msgspec.DecodeError, msgspec.ValidationError: On malformed payloads
    """
    return _decoder.decode(payload)
