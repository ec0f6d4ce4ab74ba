"""Tests for the serialization self-check."""

from unittest.mock import patch

from memc_load.schemas import UserApps
from memc_load.selftest import SAMPLE_LINES, run_selftest


class TestRunSelftest:

    def test_sample_lines_pass(self):
        assert run_selftest() is True

    def test_samples_cover_two_partitions(self):
        assert {line.split(b"\t")[0] for line in SAMPLE_LINES} == {b"idfa", b"gaid"}

    def test_detects_mismatch(self):
        with patch("memc_load.selftest.decode_user_apps", return_value=UserApps(apps=[1])):
            assert run_selftest() is False
