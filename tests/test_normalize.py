from datetime import datetime, timezone

import pytest

from linkmonitor.utils.civil_time import civil_date, civil_month, get_zone, month_start, parse_month, shift_date
from linkmonitor.utils.normalize import normalize_url


def test_normalize_strips_trailing_slash():
    assert normalize_url("http://a.com/") == normalize_url("http://a.com") == "http://a.com"
    assert normalize_url("http://a.com/blog/") == "http://a.com/blog"
    assert normalize_url("http://a.com/blog") == "http://a.com/blog"


def test_normalize_is_idempotent():
    for url in ["http://a.com/", "https://b.org/x/", "https://c.net", "http://d.io//", ""]:
        once = normalize_url(url)
        assert normalize_url(once) == once


def test_civil_boundaries_use_shanghai_time():
    tz = get_zone("Asia/Shanghai")
    # 2023-10-31 17:00 UTC is already November 1st in Shanghai
    ts = datetime(2023, 10, 31, 17, 0, tzinfo=timezone.utc)
    assert civil_date(ts, tz) == "2023-11-01"
    assert civil_month(ts, tz) == "2023-11"
    assert month_start(ts, tz) == datetime(2023, 10, 31, 16, 0, tzinfo=timezone.utc)


def test_naive_values_are_treated_as_utc():
    tz = get_zone("Asia/Shanghai")
    assert civil_date(datetime(2023, 10, 31, 17, 0), tz) == "2023-11-01"


def test_parse_month():
    assert parse_month("2023-11") == (2023, 11)
    for bad in ["2023-13", "2023/11", "23-11", "", "2023-1"]:
        with pytest.raises(ValueError):
            parse_month(bad)


def test_shift_date_crosses_months():
    assert shift_date("2023-03-01", -30) == "2023-01-30"
