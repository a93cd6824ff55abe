# field.py
# Field codec: everything entering the ledger becomes an int in [0, SNARK_FIELD).
# Addresses are EIP-55 checksummed (web3) before they are hashed, so any
# casing of the same 20-byte identifier maps to the same field element.

import re

from web3 import Web3

from .errors import InvalidAddress, InvalidInput

# BN254 scalar field
SNARK_FIELD = 21888242871839275222246405745257275088548364400416034343698204186575808495617

_HEX_ADDR = re.compile(r"^0x[0-9a-fA-F]{40}$")
_DEC = re.compile(r"^[0-9]+$")
_HEX = re.compile(r"^0x[0-9a-fA-F]+$")
# CPython's default int/str conversion limit, applied to hex too
MAX_DIGITS = 4300


def _as_int(value) -> int:
    # bool is an int subclass; a True balance is a caller bug
    if isinstance(value, bool):
        raise InvalidInput(f"not an integer: {value!r}")
    if isinstance(value, int):
        n = value
    elif isinstance(value, str):
        s = value.strip()
        if len(s) > MAX_DIGITS + 2:
            raise InvalidInput(f"integer string of {len(s)} chars exceeds {MAX_DIGITS} digits")
        try:
            if _HEX.match(s.lower()):
                n = int(s, 16)
            elif _DEC.match(s):
                n = int(s, 10)
            else:
                raise InvalidInput(f"not a non-negative integer: {value!r}")
        except InvalidInput:
            raise
        except ValueError as e:
            # int() refuses decimal strings past sys.get_int_max_str_digits()
            raise InvalidInput(f"integer string of {len(s)} chars not accepted: {e}") from e
    else:
        raise InvalidInput(f"unsupported amount type {type(value).__name__}: {value!r}")
    if n < 0:
        raise InvalidInput(f"negative value: {value!r}")
    return n


def to_field(value) -> int:
    return _as_int(value) % SNARK_FIELD


def parse_amount(value) -> int:
    """
    Boundary parser for balances and amounts (int, decimal string or 0x-hex string).
    Internal code only ever sees the reduced int this returns.
    """
    return to_field(value)


def canonicalize_address(addr) -> str:
    if not isinstance(addr, str) or not _HEX_ADDR.match(addr.strip()):
        raise InvalidAddress(f"malformed address: {addr!r}")
    try:
        return Web3.to_checksum_address(addr.strip())
    except ValueError as e:
        raise InvalidAddress(f"malformed address: {addr!r}") from e


def address_to_field(addr) -> int:
    return to_field(canonicalize_address(addr))


def is_field_element(n) -> bool:
    return isinstance(n, int) and not isinstance(n, bool) and 0 <= n < SNARK_FIELD
