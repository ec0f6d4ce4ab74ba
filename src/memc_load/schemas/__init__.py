"""Record schemas: device types, parsed events and the cache wire payload."""

from memc_load.schemas.device import DeviceType
from memc_load.schemas.events import UINT32_MAX, AppsInstalledEvent, EncodedRecord
from memc_load.schemas.user_apps import UserApps, decode_user_apps, encode_user_apps

__all__ = [
    "DeviceType",
    "AppsInstalledEvent",
    "EncodedRecord",
    "UINT32_MAX",
    "UserApps",
    "encode_user_apps",
    "decode_user_apps",
]
