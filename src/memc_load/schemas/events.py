"""
Installed-apps event schemas.

``AppsInstalledEvent`` is the validated, in-memory form of one log line;
``EncodedRecord`` is what the writer stores in the cache.
"""

import math
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from memc_load.schemas.device import DeviceType

UINT32_MAX = 2**32 - 1


class AppsInstalledEvent(BaseModel):
    """One parsed "installed apps" line.

    Attributes:
        device_type: Identifier category, selects the cache partition
        device_id: Device identifier within that category
        lat: Latitude, None when absent or unparseable
        lon: Longitude, None when absent or unparseable
        apps: Installed application ids in input order

    Example:
        >>> event = AppsInstalledEvent(
        ...     device_type="idfa",
        ...     device_id="1rfw452y52g2gq4g",
        ...     lat=55.55,
        ...     lon=42.42,
        ...     apps=[1423, 43, 567],
        ... )
        >>> event.cache_key
        'idfa1rfw452y52g2gq4g'
    """

    model_config = ConfigDict(frozen=True)

    device_type: DeviceType = Field(..., description="Device identifier category")
    device_id: str = Field(..., description="Device identifier")
    lat: float | None = Field(default=None, description="Latitude")
    lon: float | None = Field(default=None, description="Longitude")
    apps: list[int] = Field(default_factory=list, description="Installed app ids (uint32)")

    @field_validator("apps")
    @classmethod
    def validate_app_ids(cls, v: list[int]) -> list[int]:
        for app_id in v:
            if not 0 <= app_id <= UINT32_MAX:
                raise ValueError(f"app id {app_id} out of uint32 range")
        return v

    @model_validator(mode="after")
    def validate_coordinates(self) -> "AppsInstalledEvent":
        """Coordinates are either both present and finite, or both absent."""
        if (self.lat is None) != (self.lon is None):
            raise ValueError("lat and lon must be set together")
        if self.lat is not None and not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            raise ValueError("lat and lon must be finite")
        return self

    @property
    def cache_key(self) -> str:
        # Plain concatenation, no separator: readers look records up this way
        return f"{self.device_type.value}{self.device_id}"


@dataclass(frozen=True)
class EncodedRecord:
    """A serialized event routed to one cache partition."""

    key: str
    partition: DeviceType
    payload: bytes
