import pytest

from zkledger.errors import InvalidInput, KeyAlreadyExists, KeyNotFound
from zkledger.field import SNARK_FIELD
from zkledger.hashing import hash_entry
from zkledger.smt_state import (
    DEFAULTS,
    DEPTH,
    SmtProof,
    SparseMerkleTree,
    bit_at,
    fold_proof,
    verify_proof,
)


@pytest.fixture
def tree():
    return SparseMerkleTree()


def test_empty_tree_root_is_default(tree):
    assert tree.root == DEFAULTS[0]
    assert len(tree) == 0


def test_bit_at_msb_first():
    key = 1 << (DEPTH - 1)
    assert bit_at(key, 0) == 1
    assert bit_at(key, DEPTH - 1) == 0
    assert bit_at(1, DEPTH - 1) == 1


def test_add_get_update_delete(tree):
    r0 = tree.root
    r1 = tree.add(10, 100)
    assert r1 != r0
    assert tree.get(10) == 100
    assert 10 in tree

    r2 = tree.update(10, 200)
    assert r2 not in (r0, r1)
    assert tree.get(10) == 200

    r3 = tree.delete(10)
    assert r3 == r0
    assert tree.get(10) is None
    assert 10 not in tree


def test_add_existing_key_fails(tree):
    tree.add(5, 1)
    with pytest.raises(KeyAlreadyExists):
        tree.add(5, 2)
    assert tree.get(5) == 1


def test_update_and_delete_missing_key_fail(tree):
    with pytest.raises(KeyNotFound):
        tree.update(5, 1)
    with pytest.raises(KeyNotFound):
        tree.delete(5)


def test_rejects_non_field_values(tree):
    with pytest.raises(InvalidInput):
        tree.add(SNARK_FIELD, 1)
    with pytest.raises(InvalidInput):
        tree.add(1, -1)


def test_root_depends_only_on_contents():
    a = SparseMerkleTree()
    a.add(1, 11)
    a.add(2, 22)
    a.add(3, 33)
    a.delete(2)

    b = SparseMerkleTree()
    b.add(3, 33)
    b.add(1, 99)
    b.update(1, 11)
    assert a.root == b.root


def test_neighbouring_keys_share_subtrees(tree):
    # keys 2 and 3 differ only in the last bit
    tree.add(2, 5)
    tree.add(3, 6)
    p = tree.create_proof(2)
    assert p.siblings[0] == hash_entry(3, 6)
    assert tree.verify_proof(p)


def test_membership_proof(tree):
    tree.add(123456789, 42)
    tree.add(987654321, 7)
    p = tree.create_proof(123456789)
    assert p.membership is True
    assert p.value == 42
    assert len(p.siblings) == DEPTH
    assert verify_proof(p)
    assert verify_proof(p, tree.root)


def test_non_membership_proof(tree):
    tree.add(123456789, 42)
    p = tree.create_proof(55)
    assert p.membership is False
    assert p.value is None
    assert verify_proof(p, tree.root)


def test_non_membership_on_empty_tree(tree):
    p = tree.create_proof(77)
    assert fold_proof(77, None, p.siblings) == DEFAULTS[0]
    assert verify_proof(p)


def test_stale_proof_fails_against_new_root(tree):
    tree.add(1, 1)
    p = tree.create_proof(1)
    tree.update(1, 2)
    assert verify_proof(p)
    assert not verify_proof(p, tree.root)


def test_tampered_proofs_fail(tree):
    tree.add(1, 1)
    tree.add(2, 2)
    p = tree.create_proof(1)

    forged_value = SmtProof(p.key, 999, p.siblings, p.root, True)
    assert not verify_proof(forged_value)

    forged_sibling = SmtProof(p.key, p.value, [p.siblings[0] + 1] + p.siblings[1:], p.root, True)
    assert not verify_proof(forged_sibling)

    claims_absent = SmtProof(p.key, None, p.siblings, p.root, False)
    assert not verify_proof(claims_absent)

    inconsistent = SmtProof(p.key, p.value, p.siblings, p.root, False)
    assert not verify_proof(inconsistent)

    short = SmtProof(p.key, p.value, p.siblings[:-1], p.root, True)
    assert not verify_proof(short)


def test_proof_dict_round_trip(tree):
    tree.add(31337, 4242)
    p = tree.create_proof(31337)
    d = p.to_dict()
    assert d["membership"] is True
    assert d["root"].startswith("0x") and len(d["root"]) == 66
    assert len(d["proof"]) == DEPTH
    assert d["proof"][0]["is_right"] is False  # 31337 is odd
    assert SmtProof.from_dict(d) == p


def test_compressed_proof_skips_defaults(tree):
    tree.add(2, 5)
    tree.add(3, 6)
    compact = tree.create_proof(2).compress()
    assert len(compact) == 1
    assert compact[0]["depth"] == 1
    assert compact[0]["is_right"] is True


def test_out_of_field_proof_values_are_rejected(tree):
    tree.add(1, 1)
    tree.add(2, 2)
    p = tree.create_proof(1)
    assert verify_proof(p, tree.root)

    aliased_value = SmtProof(p.key, p.value + SNARK_FIELD, p.siblings, p.root, True)
    assert not verify_proof(aliased_value, tree.root)

    aliased_key = SmtProof(p.key + SNARK_FIELD, p.value, p.siblings, p.root, True)
    assert not verify_proof(aliased_key, tree.root)

    aliased_sibling = SmtProof(p.key, p.value, [p.siblings[0] + SNARK_FIELD] + p.siblings[1:], p.root, True)
    assert not verify_proof(aliased_sibling, tree.root)


def test_out_of_field_value_from_json_is_rejected(tree):
    tree.add(1, 1)
    d = tree.create_proof(1).to_dict()
    d["value"] = hex(1 + SNARK_FIELD)
    assert not verify_proof(SmtProof.from_dict(d), tree.root)
