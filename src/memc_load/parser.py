"""
Line parsing and encoding.

Turns one raw TSV record into an ``EncodedRecord``:

    deviceType \\t deviceId \\t lat \\t lon \\t app1,app2,...

Record-level problems raise ``RecordError`` subclasses; the caller decides
how to count them. Invalid app tokens and coordinates are not errors: they
are dropped from the output.
"""

import logging
import math

import msgspec
from pydantic import ValidationError

from memc_load.exceptions import MalformedLineError, SerializationError, UnknownDeviceTypeError
from memc_load.schemas import UINT32_MAX, AppsInstalledEvent, DeviceType, EncodedRecord
from memc_load.schemas.user_apps import encode_user_apps

logger = logging.getLogger(__name__)

FIELD_COUNT = 5
FIELD_SEPARATOR = "\t"
APP_SEPARATOR = ","

_DEVICE_TYPES = {dt.value: dt for dt in DeviceType}


def parse_app_ids(raw_apps: str) -> list[int]:
    """Keep the tokens that are ASCII decimal uint32 values, in input order."""
    apps: list[int] = []
    for token in raw_apps.split(APP_SEPARATOR):
        token = token.strip()
        if token.isascii() and token.isdigit():
            value = int(token)
            if value <= UINT32_MAX:
                apps.append(value)
                continue
        logger.debug("Dropping invalid app id", extra={"token": token[:64]})
    return apps


def parse_coordinates(raw_lat: str, raw_lon: str) -> tuple[float | None, float | None]:
    """Both finite floats, or (None, None)."""
    try:
        lat = float(raw_lat)
        lon = float(raw_lon)
    except ValueError:
        return None, None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None, None
    return lat, lon


class LineParser:
    """Stateless record parser; safe to share across workers."""

    def parse(self, raw: bytes) -> AppsInstalledEvent | None:
        """
        Parse one record.

        Returns:
            The event, or None for an empty record

        Raises:
            MalformedLineError: Not UTF-8 or fewer than five fields
            UnknownDeviceTypeError: First field is not a known device type
        """
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        if not raw.strip():
            return None

        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedLineError("Record is not valid UTF-8", cause=e) from e

        fields = line.split(FIELD_SEPARATOR)
        if len(fields) < FIELD_COUNT:
            raise MalformedLineError(
                f"Expected at least {FIELD_COUNT} fields, got {len(fields)}",
                context={"field_count": len(fields)},
            )

        raw_type, device_id, raw_lat, raw_lon, raw_apps = fields[:FIELD_COUNT]
        device_type = _DEVICE_TYPES.get(raw_type)
        if device_type is None:
            raise UnknownDeviceTypeError(raw_type)

        lat, lon = parse_coordinates(raw_lat, raw_lon)

        try:
            return AppsInstalledEvent(
                device_type=device_type,
                device_id=device_id,
                lat=lat,
                lon=lon,
                apps=parse_app_ids(raw_apps),
            )
        except ValidationError as e:
            raise MalformedLineError(f"Invalid record: {e.error_count()} error(s)", cause=e) from e

    def encode(self, event: AppsInstalledEvent) -> EncodedRecord:
        """
        Raises:
            SerializationError: If the payload cannot be encoded
        """
        try:
            payload = encode_user_apps(event.apps, event.lat, event.lon)
        except (msgspec.EncodeError, OverflowError, TypeError) as e:
            raise SerializationError(
                "Failed to encode payload",
                cause=e,
                context={"cache_key": event.cache_key},
            ) from e

        return EncodedRecord(key=event.cache_key, partition=event.device_type, payload=payload)

    def process(self, raw: bytes) -> EncodedRecord | None:
        """Parse and encode one record. None for an empty record."""
        event = self.parse(raw)
        if event is None:
            return None
        return self.encode(event)
