"""Device identifier types; one cache partition per type."""

from enum import Enum


class DeviceType(str, Enum):
    """Advertising/device identifier categories present in the logs."""

    IDFA = "idfa"
    GAID = "gaid"
    ADID = "adid"
    DVID = "dvid"

    def __str__(self) -> str:
        return self.value
