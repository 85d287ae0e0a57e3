import pytest

from conftest import REWE_TEXT
from snackbox_invoices.errors import UnknownFormatError
from snackbox_invoices.extraction.pipeline import parse_file, parse_invoice, select_parser, supported_formats


def test_supported_formats():
    assert supported_formats() == ["rewe", "selgros", "sonderposten"]


@pytest.mark.parametrize("key", ["rewe", "REWE", " Rewe "])
def test_select_parser_is_case_insensitive(key):
    assert select_parser(key).format_key == "rewe"


def test_unknown_format_is_fatal():
    with pytest.raises(UnknownFormatError) as exc_info:
        parse_invoice(REWE_TEXT, "aldi")

    assert exc_info.value.format_key == "aldi"
    assert "selgros" in str(exc_info.value)


def test_unknown_format_checked_before_text():
    with pytest.raises(UnknownFormatError):
        parse_invoice("", "aldi")


def test_parse_file_reads_text(tmp_path):
    path = tmp_path / "rewe.txt"
    path.write_text(REWE_TEXT, encoding="utf-8")

    result = parse_file(path, "rewe")

    assert result.success
    assert len(result.items) == 2
