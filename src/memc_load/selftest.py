"""Serialization self-check (``memc-load --test``)."""

import logging

from memc_load.parser import LineParser
from memc_load.schemas.user_apps import decode_user_apps

logger = logging.getLogger(__name__)

SAMPLE_LINES = (
    b"idfa\t1rfw452y52g2gq4g\t55.55\t42.42\t1423,43,567,3,7,23",
    b"gaid\t7rfw452y52g2gq4g\t55.55\t42.42\t7423,424",
)


def run_selftest(lines: tuple[bytes, ...] = SAMPLE_LINES) -> bool:
    """Encode each sample line, decode the payload and compare.

    Returns:
        True if every line survives the round trip unchanged
    """
    parser = LineParser()
    ok = True
    for raw in lines:
        event = parser.parse(raw)
        record = parser.encode(event)
        decoded = decode_user_apps(record.payload)

        if decoded.apps == event.apps and (decoded.lat, decoded.lon) == (event.lat, event.lon):
            logger.info(
                "Serialization is successful",
                extra={"cache_key": record.key},
            )
        else:
            logger.error(
                "Serialization mismatch",
                extra={"cache_key": record.key, "error_message": f"{event.apps} != {decoded.apps}"},
            )
            ok = False
    return ok
