# zkledger
# Per-(user, token) balance ledger committed to a sparse Merkle tree root.

from .accounts import AccountIndex, AccountState, TombstoneRegistry
from .errors import InvalidAddress, InvalidInput, KeyAlreadyExists, KeyNotFound, LedgerError
from .field import SNARK_FIELD, canonicalize_address, parse_amount, to_field
from .hashing import TAG_ENTRY, TAG_KEY, TAG_NODE, hash_key, hash_leaf
from .ledger import BalanceUpdate, Ledger, RootHistory
from .smt_state import SmtProof, SparseMerkleTree, verify_proof

__version__ = "0.1.0"
