"""Tests for the var_dump reader."""
import pytest

from src.parse.vardump import VarDumpError, looks_like_vardump, parse_vardump
from payloads import LEGACY_DUMP


def test_scalars_and_nesting():
    """Strings, ints, floats, bools and NULL inside nested arrays."""
    text = """
    array(5) {
      ["name"]=>
      string(5) "Dubai"
      ["count"]=>
      int(3)
      ["lat"]=>
      float(25.25)
      ["open"]=>
      bool(true)
      ["extra"]=>
      NULL
    }
    """
    assert parse_vardump(text) == {"name": "Dubai", "count": 3, "lat": 25.25, "open": True, "extra": None}


def test_sequential_keys_become_list():
    text = 'array(2) { [0]=> string(1) "a" [1]=> string(1) "b" }'
    assert parse_vardump(text) == ["a", "b"]


def test_non_sequential_keys_stay_dict():
    text = 'array(2) { [1]=> string(1) "a" [5]=> string(1) "b" }'
    assert parse_vardump(text) == {1: "a", 5: "b"}


def test_object_with_visibility_keys():
    """object(Class)#n (m) headers and ["prop":protected] keys."""
    text = """
    object(Location)#12 (2) {
      ["code":protected]=>
      string(6) "DXBA02"
      ["name":"Location":private]=>
      string(5) "Dubai"
    }
    """
    assert parse_vardump(text) == {"code": "DXBA02", "name": "Dubai"}


def test_string_length_in_bytes():
    """Declared lengths count UTF-8 bytes, as PHP does."""
    text = 'array(1) { ["city"]=> string(7) "Zürich" }'
    assert parse_vardump(text) == {"city": "Zürich"}


def test_wrong_declared_length_falls_back_to_closing_quote():
    text = 'array(1) {\n  ["city"]=>\n  string(99) "Dubai Marina"\n}'
    assert parse_vardump(text) == {"city": "Dubai Marina"}


def test_string_containing_quote():
    text = 'array(1) { ["name"]=> string(9) "Joe\'s "A"" }'
    assert parse_vardump(text) == {"name": 'Joe\'s "A"'}


def test_full_legacy_dump():
    data = parse_vardump(LEGACY_DUMP)
    matched = data["OTA_VehLocSearchRS"]["VehMatchedLocs"]
    assert len(matched) == 2
    detail = matched[0]["VehMatchedLoc"]["LocationDetail"]
    assert detail["attr"]["Code"] == "DXBA02"
    assert detail["Address"]["CountryName"]["attr"]["Code"] == "AE"


def test_looks_like_vardump():
    assert looks_like_vardump(LEGACY_DUMP)
    assert not looks_like_vardump('{"a": 1}')
    assert not looks_like_vardump("")


@pytest.mark.parametrize("text", ["", "no dump here", "array(1) {", 'array(1) { ["a"]=> widget(3) }'])
def test_malformed_input_raises(text):
    with pytest.raises(VarDumpError):
        parse_vardump(text)
