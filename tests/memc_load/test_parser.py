"""Tests for line parsing and encoding."""

import logging

import pytest

from memc_load.exceptions import MalformedLineError, RecordError, UnknownDeviceTypeError
from memc_load.parser import LineParser, parse_app_ids, parse_coordinates
from memc_load.schemas import DeviceType, decode_user_apps


@pytest.fixture
def parser():
    return LineParser()


class TestParse:

    def test_sample_line(self, parser, sample_line):
        event = parser.parse(sample_line)

        assert event.device_type == DeviceType.IDFA
        assert event.device_id == "1rfw452y52g2gq4g"
        assert event.lat == 55.55
        assert event.lon == 42.42
        assert event.apps == [1423, 43, 567, 3, 7]
        assert event.cache_key == "idfa1rfw452y52g2gq4g"

    @pytest.mark.parametrize("raw", [b"", b"\r", b"   "])
    def test_empty_record_is_skipped(self, parser, raw):
        assert parser.parse(raw) is None

    def test_trailing_carriage_return_stripped(self, parser, sample_line):
        event = parser.parse(sample_line + b"\r")
        assert event.apps == [1423, 43, 567, 3, 7]

    @pytest.mark.parametrize(
        "raw",
        [
            b"idfa\t1rfw452y52g2gq4g\t55.55\t42.42",
            b"idfa\t1rfw452y52g2gq4g",
            b"idfa",
        ],
    )
    def test_too_few_fields(self, parser, raw):
        with pytest.raises(MalformedLineError) as exc_info:
            parser.parse(raw)
        assert exc_info.value.context["field_count"] == raw.count(b"\t") + 1

    def test_unknown_device_type(self, parser):
        with pytest.raises(UnknownDeviceTypeError) as exc_info:
            parser.parse(b"imei\t123\t1.0\t2.0\t1,2")
        assert exc_info.value.device_type == "imei"
        assert isinstance(exc_info.value, MalformedLineError)

    def test_extra_fields_are_ignored(self, parser):
        record = parser.process(b"idfa\t1rfw452y52g2gq4g\t55.55\t42.42\t1423,43\textra")

        assert record.key == "idfa1rfw452y52g2gq4g"
        assert decode_user_apps(record.payload).apps == [1423, 43]

    def test_empty_device_id_keys_on_device_type(self, parser):
        record = parser.process(b"gaid\t\t55.55\t42.42\t1,2")

        assert record.key == "gaid"
        assert record.partition == DeviceType.GAID
        assert decode_user_apps(record.payload).apps == [1, 2]

    def test_invalid_utf8(self, parser):
        with pytest.raises(MalformedLineError):
            parser.parse(b"gaid\t\xff\xfe\t1.0\t2.0\t1,2")

    def test_record_errors_are_permanent(self, parser):
        with pytest.raises(RecordError) as exc_info:
            parser.parse(b"idfa")
        assert exc_info.value.is_retryable is False

    def test_empty_apps_field(self, parser):
        event = parser.parse(b"dvid\tabc\t1.0\t2.0\t")
        assert event.apps == []

    def test_invalid_coordinates_unset_both(self, parser):
        event = parser.parse(b"adid\tabc\tnorth\t42.42\t1")
        assert event.lat is None
        assert event.lon is None


class TestParseAppIds:

    def test_keeps_valid_tokens_in_order(self):
        assert parse_app_ids("5,x,3,,-1,7") == [5, 3, 7]

    def test_uint32_bounds(self):
        assert parse_app_ids("0,4294967295,4294967296") == [0, 4294967295]

    def test_rejects_non_ascii_digits(self):
        assert parse_app_ids("١٢,12") == [12]

    def test_tolerates_surrounding_spaces(self):
        assert parse_app_ids(" 1 , 2") == [1, 2]

    def test_invalid_tokens_logged_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="memc_load.parser"):
            parse_app_ids("1,abc")
        assert any(getattr(r, "token", None) == "abc" for r in caplog.records)


class TestParseCoordinates:

    def test_both_valid(self):
        assert parse_coordinates("55.55", "-42.5") == (55.55, -42.5)

    @pytest.mark.parametrize(
        "lat, lon",
        [("", "1.0"), ("1.0", ""), ("nan", "1.0"), ("1.0", "inf"), ("x", "y")],
    )
    def test_either_invalid_unsets_both(self, lat, lon):
        assert parse_coordinates(lat, lon) == (None, None)


class TestProcess:

    def test_produces_encoded_record(self, parser, sample_line):
        record = parser.process(sample_line)

        assert record.key == "idfa1rfw452y52g2gq4g"
        assert record.partition == DeviceType.IDFA
        decoded = decode_user_apps(record.payload)
        assert decoded.apps == [1423, 43, 567, 3, 7]
        assert decoded.lat == 55.55
        assert decoded.lon == 42.42

    def test_key_is_plain_concatenation(self, parser):
        record = parser.process(b"gaid\tX-Y_z\t\t\t1")
        assert record.key == "gaidX-Y_z"

    def test_empty_record(self, parser):
        assert parser.process(b"") is None

    def test_payload_is_deterministic(self, parser, sample_line):
        assert parser.process(sample_line).payload == parser.process(sample_line).payload
