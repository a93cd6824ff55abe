import pytest

from zkledger.errors import InvalidAddress, InvalidInput
from zkledger.field import (
    SNARK_FIELD,
    address_to_field,
    canonicalize_address,
    is_field_element,
    parse_amount,
    to_field,
)

from .conftest import TOKEN, USER


@pytest.mark.parametrize("value, expected", [
    (0, 0),
    (675, 675),
    ("1000", 1000),
    (" 42 ", 42),
    ("0x10", 16),
    ("0XfF", 255),
    (SNARK_FIELD, 0),
    (SNARK_FIELD + 5, 5),
    (str(SNARK_FIELD + 7), 7),
])
def test_to_field_reduces(value, expected):
    assert to_field(value) == expected


@pytest.mark.parametrize("value", [-1, "-5", "", "12a", "1.5", 1.5, None, True, False, b"10", [1]])
def test_to_field_rejects(value):
    with pytest.raises(InvalidInput):
        to_field(value)


def test_parse_amount_is_a_value_error():
    with pytest.raises(ValueError):
        parse_amount("lots")
    assert parse_amount("500") == 500


def test_canonicalize_any_casing():
    assert canonicalize_address(USER.lower()) == USER
    assert canonicalize_address(USER.upper().replace("0X", "0x")) == USER
    assert canonicalize_address(TOKEN) == TOKEN


@pytest.mark.parametrize("addr", [
    "",
    "0x1234",
    USER[2:],
    USER + "00",
    "0xZZ9Fd6e51aad88F6F4ce6aB8827279cffFb92266",
    None,
    1234,
])
def test_canonicalize_rejects_malformed(addr):
    with pytest.raises(InvalidAddress):
        canonicalize_address(addr)


def test_address_to_field_ignores_casing():
    assert address_to_field(USER) == address_to_field(USER.lower())
    assert address_to_field(USER) == int(USER, 16)


def test_is_field_element():
    assert is_field_element(0)
    assert is_field_element(SNARK_FIELD - 1)
    assert not is_field_element(SNARK_FIELD)
    assert not is_field_element(-1)
    assert not is_field_element(True)
    assert not is_field_element("1")


def test_oversized_integer_strings_are_invalid_input():
    with pytest.raises(InvalidInput):
        to_field("1" * 5000)
    with pytest.raises(InvalidInput):
        to_field("0x" + "f" * 5000)


def test_long_but_convertible_strings_reduce():
    assert to_field("1" * 100) == int("1" * 100) % SNARK_FIELD
    assert to_field("0x" + "f" * 100) == int("f" * 100, 16) % SNARK_FIELD
