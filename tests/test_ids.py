import pytest

from sheetsdiff.errors import ConfigError
from sheetsdiff.ids import load_mentions, load_sheet_ids, normalize_sheet_id, parse_sheet_ids


def test_parse_skips_comments_and_blanks_and_dedupes():
    lines = [
        "# watched sheets",
        "",
        "1abc",
        "   2def/Responses!A:F  ",
        "1abc",
        "https://docs.google.com/spreadsheets/d/3ghi_-X/edit#gid=0",
        "3ghi_-X",
    ]
    assert parse_sheet_ids(lines) == ["1abc", "2def/Responses!A:F", "3ghi_-X"]


def test_normalize_sheet_id():
    assert normalize_sheet_id("  # note") is None
    assert normalize_sheet_id("   ") is None
    assert normalize_sheet_id("http://docs.google.com/spreadsheets/d/XYZ") == "XYZ"


def test_load_sheet_ids(tmp_path):
    path = tmp_path / "ids.txt"
    path.write_text("1abc\n\n# c\n2def\n1abc\n", encoding="utf-8")
    assert load_sheet_ids(path) == ["1abc", "2def"]


def test_missing_ids_file_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_sheet_ids(tmp_path / "ids.txt")


def test_load_mentions(tmp_path):
    path = tmp_path / "mentions.txt"
    path.write_text("a123 111\nB456   222 extra\nlonely\n# x 9\n", encoding="utf-8")
    assert load_mentions(path) == {"A123": "111", "B456": "222"}


def test_missing_mentions_file_means_no_mentions(tmp_path):
    assert load_mentions(tmp_path / "missing.txt") == {}
    assert load_mentions(None) == {}


def test_inline_comment_after_id_is_dropped():
    assert normalize_sheet_id("1AbC  # finance") == "1AbC"
    assert normalize_sheet_id("1AbC/Responses!A:F\t# intake form") == "1AbC/Responses!A:F"
    assert normalize_sheet_id(
        "https://docs.google.com/spreadsheets/d/1AbC/edit#gid=0  # budget"
    ) == "1AbC"
