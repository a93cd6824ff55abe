# smt_state.py
# Binary Sparse Merkle Tree over 256-bit keys (field elements, big-endian).
# Internal node: hash_node(left, right). Occupied leaf slot: hash_entry(key, value).
# Empty leaf slot = 0, default tree precomputed so missing keys verify as empty.
# Only non-default nodes are stored: the root depends on current contents only.

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import InvalidInput, KeyAlreadyExists, KeyNotFound
from .field import is_field_element
from .hashing import b32, hash_entry, hash_node

logger = logging.getLogger(__name__)

DEPTH = 256
EMPTY_LEAF = 0


def hex32(n: int) -> str:
    return "0x" + b32(n).hex()


def bit_at(key: int, depth: int) -> int:
    # depth in [0..255]; 0 = most-significant bit of key
    return (key >> (DEPTH - 1 - depth)) & 1


def precompute_defaults():
    # defaults[d] = default hash at level d (0=root .. 256=leaf)
    defaults = [0] * (DEPTH + 1)
    defaults[DEPTH] = EMPTY_LEAF
    for d in range(DEPTH - 1, -1, -1):
        ch = defaults[d + 1]
        defaults[d] = hash_node(ch, ch)
    return defaults


DEFAULTS = precompute_defaults()


def _check(name: str, n) -> int:
    if not is_field_element(n):
        raise InvalidInput(f"{name} must be a field element, got {n!r}")
    return n


@dataclass
class SmtProof:
    key: int
    value: Optional[int]  # None -> non-membership
    siblings: List[int]   # leaf level first, DEPTH entries
    root: int
    membership: bool

    def to_dict(self) -> dict:
        steps = []
        for i, sib in enumerate(self.siblings):
            depth = DEPTH - 1 - i
            # is_right means sibling is to the right of current node
            steps.append({"sibling": hex32(sib), "is_right": bit_at(self.key, depth) == 0})
        return {
            "key": hex32(self.key),
            "value": None if self.value is None else hex32(self.value),
            "membership": self.membership,
            "root": hex32(self.root),
            "proof": steps,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "SmtProof":
        value = d.get("value")
        return cls(
            key=int(d["key"], 16),
            value=None if value is None else int(value, 16),
            siblings=[int(s["sibling"], 16) for s in d["proof"]],
            root=int(d["root"], 16),
            membership=bool(d["membership"]),
        )

    def compress(self) -> List[dict]:
        # keep only steps whose sibling != default at that depth
        compact = []
        for i, sib in enumerate(self.siblings):
            if sib != DEFAULTS[DEPTH - i]:
                compact.append({"depth": i + 1, "sibling": hex32(sib),
                                "is_right": bit_at(self.key, DEPTH - 1 - i) == 0})
        return compact


def fold_proof(key: int, value: Optional[int], siblings: List[int]) -> int:
    cur = EMPTY_LEAF if value is None else hash_entry(key, value)
    for i, sib in enumerate(siblings):
        if bit_at(key, DEPTH - 1 - i):
            cur = hash_node(sib, cur)
        else:
            cur = hash_node(cur, sib)
    return cur


def verify_proof(proof: SmtProof, root: Optional[int] = None) -> bool:
    """
    Recompute the root from the proof entry and siblings.
    `root` defaults to the root claimed inside the proof.
    """
    expected = proof.root if root is None else root
    if len(proof.siblings) != DEPTH:
        return False
    # mix reduces mod P, so out-of-field inputs would alias canonical ones
    if not is_field_element(proof.key) or not all(is_field_element(s) for s in proof.siblings):
        return False
    if proof.value is not None and not is_field_element(proof.value):
        return False
    if proof.membership != (proof.value is not None):
        return False
    return fold_proof(proof.key, proof.value, proof.siblings) == expected == proof.root


class SparseMerkleTree:
    def __init__(self):
        # (depth, position) -> hash, non-default nodes only
        self._nodes: Dict[Tuple[int, int], int] = {}
        self._leaves: Dict[int, int] = {}

    def __len__(self):
        return len(self._leaves)

    def __contains__(self, key):
        return key in self._leaves

    @property
    def root(self) -> int:
        return self._nodes.get((0, 0), DEFAULTS[0])

    def get(self, key: int) -> Optional[int]:
        return self._leaves.get(key)

    def add(self, key: int, value: int) -> int:
        _check("key", key)
        _check("value", value)
        if key in self._leaves:
            raise KeyAlreadyExists(hex32(key))
        self._leaves[key] = value
        self._rehash_path(key, hash_entry(key, value))
        return self.root

    def update(self, key: int, value: int) -> int:
        _check("key", key)
        _check("value", value)
        if key not in self._leaves:
            raise KeyNotFound(hex32(key))
        self._leaves[key] = value
        self._rehash_path(key, hash_entry(key, value))
        return self.root

    def delete(self, key: int) -> int:
        _check("key", key)
        if key not in self._leaves:
            raise KeyNotFound(hex32(key))
        del self._leaves[key]
        self._rehash_path(key, EMPTY_LEAF)
        return self.root

    def _set_node(self, depth: int, pos: int, h: int):
        if h == DEFAULTS[depth]:
            self._nodes.pop((depth, pos), None)
        else:
            self._nodes[(depth, pos)] = h

    def _rehash_path(self, key: int, leaf_node: int):
        # fold upward 256 -> 0
        pos = key
        cur = leaf_node
        self._set_node(DEPTH, pos, cur)
        for depth in range(DEPTH, 0, -1):
            sib = self._nodes.get((depth, pos ^ 1), DEFAULTS[depth])
            if pos & 1:
                cur = hash_node(sib, cur)
            else:
                cur = hash_node(cur, sib)
            pos >>= 1
            self._set_node(depth - 1, pos, cur)
        logger.debug("smt root -> %s (%d leaves)", hex32(cur), len(self._leaves))

    def create_proof(self, key: int) -> SmtProof:
        _check("key", key)
        siblings = []
        pos = key
        for depth in range(DEPTH, 0, -1):
            siblings.append(self._nodes.get((depth, pos ^ 1), DEFAULTS[depth]))
            pos >>= 1
        value = self._leaves.get(key)
        return SmtProof(key=key, value=value, siblings=siblings,
                        root=self.root, membership=value is not None)

    def verify_proof(self, proof: SmtProof, root: Optional[int] = None) -> bool:
        return verify_proof(proof, root)
