"""Tests for Range header parsing."""

import pytest

from magstream.services.range_parser import ByteRange, parse_range_header


def test_missing_header_is_full_content():
    r = parse_range_header(None, 1000)
    assert (r.start, r.end, r.total) == (0, 999, 1000)


def test_empty_header_is_full_content():
    assert parse_range_header("", 1000) == ByteRange(0, 999)


def test_explicit_range():
    r = parse_range_header("bytes=100-299", 1000)
    assert (r.start, r.end, r.total) == (100, 299, 200)


@pytest.mark.parametrize("start,end", [(0, 1), (1, 1), (5, 998), (999, 999), (250, 750)])
def test_total_matches_interval(start, end):
    r = parse_range_header(f"bytes={start}-{end}", 1000)
    assert r.total == end - start + 1


def test_open_ended_range_runs_to_last_byte():
    assert parse_range_header("bytes=100-", 1000) == ByteRange(100, 999)


def test_first_byte_only_is_served_as_whole_file():
    # An end of 0 is read as "no end given".
    assert parse_range_header("bytes=0-0", 1000) == ByteRange(0, 999)


def test_suffix_range_degrades_to_full_content():
    assert parse_range_header("bytes=-500", 1000) == ByteRange(0, 999)


def test_multiple_ranges_keep_the_first():
    assert parse_range_header("bytes=0-99,200-299", 1000) == ByteRange(0, 99)


@pytest.mark.parametrize("header", ["items=5-10", "garbage", "bytes=", "bytes=abc-def"])
def test_garbage_degrades_to_full_content(header):
    assert parse_range_header(header, 1000) == ByteRange(0, 999)


def test_no_bounds_checking():
    r = parse_range_header("bytes=2000-3000", 1000)
    assert (r.start, r.end) == (2000, 3000)

    r = parse_range_header("bytes=500-100", 1000)
    assert r.total < 0


class TestClamp:
    def test_inside_file_is_unchanged(self):
        assert ByteRange(100, 299).clamp(1000) == ByteRange(100, 299)

    def test_end_past_file_is_cut(self):
        assert ByteRange(900, 5000).clamp(1000) == ByteRange(900, 999)

    def test_start_past_file_is_unsatisfiable(self):
        assert ByteRange(1000, 1000).clamp(1000) is None

    def test_reversed_range_is_unsatisfiable(self):
        assert ByteRange(500, 100).clamp(1000) is None

    def test_empty_file_is_unsatisfiable(self):
        assert parse_range_header(None, 0).clamp(0) is None


def test_content_range_header_value():
    assert ByteRange(100, 299).content_range(1000) == "bytes 100-299/1000"
