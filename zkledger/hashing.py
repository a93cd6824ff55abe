# hashing.py
# Domain-separated hashing over the SNARK field.
#
# mix(x1..xn) = sha256(n || x1 || .. || xn) mod P, each xi as 32 bytes big-endian.
# The arity byte keeps 2-input and 3-input hashes apart; the tags below keep
# same-arity uses apart:
#   key   : mix(TAG_KEY,   user, token)
#   leaf  : mix(balance, nonce)            (arity 2, untagged)
#   node  : mix(TAG_NODE,  left, right)    (SMT internal node)
#   entry : mix(TAG_ENTRY, key, leaf)      (SMT occupied leaf slot)

import hashlib

from .field import SNARK_FIELD, address_to_field, to_field

TAG_KEY = 1
TAG_NODE = 2
TAG_ENTRY = 3


def b32(n: int) -> bytes:
    return n.to_bytes(32, "big")


def mix(*elements: int) -> int:
    if not 0 < len(elements) < 256:
        raise ValueError("mix takes 1..255 inputs")
    h = hashlib.sha256(bytes([len(elements)]))
    for e in elements:
        h.update(b32(int(e) % SNARK_FIELD))
    return int.from_bytes(h.digest(), "big") % SNARK_FIELD


def hash_key(user: str, token: str) -> int:
    return mix(TAG_KEY, address_to_field(user), address_to_field(token))


def hash_leaf(balance, nonce) -> int:
    return mix(to_field(balance), to_field(nonce))


def hash_node(left: int, right: int) -> int:
    return mix(TAG_NODE, left, right)


def hash_entry(key: int, value: int) -> int:
    return mix(TAG_ENTRY, key, value)
