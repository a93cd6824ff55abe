# ledger.py
# Ledger engine: per-(user, token) balances committed to a sparse Merkle tree.
#
#   key  = hash_key(user, token)
#   leaf = hash_leaf(balance, nonce)
#
# add_balance                 top-up, balance accumulates, nonce unchanged, no history entry
# execute_single_trade_update balance replaced, nonce + 1, one history entry
# execute_batch_updates       same as trade per entry, one history entry per call
# delete_key                  tombstones the last nonce, no history entry
#
# A re-created account continues its nonce from the tombstone, so payloads
# signed for an older nonce can never be replayed against it.

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .accounts import AccountIndex, AccountState, TombstoneRegistry
from .errors import InvalidInput
from .field import SNARK_FIELD, parse_amount
from .hashing import hash_key, hash_leaf
from .smt_state import SmtProof, SparseMerkleTree, hex32, verify_proof

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceUpdate:
    user: str
    token: str
    balance: Union[int, str]


class RootHistory:
    """Append-only list of committed roots."""

    def __init__(self):
        self._roots: List[int] = []

    def __len__(self):
        return len(self._roots)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._roots))

    def append(self, root: int):
        self._roots.append(root)

    @property
    def latest(self) -> Optional[int]:
        return self._roots[-1] if self._roots else None

    def snapshot(self) -> List[int]:
        return list(self._roots)


def _as_update(entry) -> BalanceUpdate:
    if isinstance(entry, BalanceUpdate):
        return entry
    if isinstance(entry, Mapping):
        missing = [f for f in ("user", "token", "balance") if f not in entry]
        if missing:
            raise InvalidInput(f"batch entry missing {', '.join(missing)}: {entry!r}")
        return BalanceUpdate(entry["user"], entry["token"], entry["balance"])
    raise InvalidInput(f"unsupported batch entry: {entry!r}")


class Ledger:
    def __init__(self, store: Optional[SparseMerkleTree] = None):
        self.store = store if store is not None else SparseMerkleTree()
        if len(self.store):
            raise ValueError("ledger needs an empty commitment store")
        self.accounts = AccountIndex()
        self.tombstones = TombstoneRegistry()
        self.history = RootHistory()
        # single writer; readers take it too so they see a whole transition
        self._lock = threading.RLock()

    # ---------------- internals ----------------

    def _current_nonce(self, key: int) -> int:
        state = self.accounts.get(key)
        if state is not None:
            return state.nonce
        last = self.tombstones.last_nonce(key)
        if last is not None:
            return last
        return 0

    def _commit_leaf(self, key: int, leaf: int):
        # the one add-vs-update rule: add iff the slot is empty right now,
        # tombstone history only feeds the nonce
        if key in self.store:
            self.store.update(key, leaf)
        else:
            self.store.add(key, leaf)

    def _apply(self, key: int, state: AccountState) -> int:
        leaf = state.leaf
        self._commit_leaf(key, leaf)
        self.accounts.put(key, state)
        return leaf

    # ---------------- writes ----------------

    def add_balance(self, user: str, token: str, amount):
        key = hash_key(user, token)
        amount = parse_amount(amount)
        with self._lock:
            prev = self.accounts.get(key)
            if prev is None:
                state = AccountState(balance=amount, nonce=self._current_nonce(key))
            else:
                state = AccountState(balance=(prev.balance + amount) % SNARK_FIELD, nonce=prev.nonce)
            self._apply(key, state)
            logger.debug("top-up %s balance=%d nonce=%d", hex32(key), state.balance, state.nonce)

    def execute_single_trade_update(self, user: str, token: str, new_balance):
        key = hash_key(user, token)
        balance = parse_amount(new_balance)
        with self._lock:
            state = AccountState(balance=balance, nonce=self._current_nonce(key) + 1)
            self._commit_leaf(key, state.leaf)
            root = self.store.root
            self.history.append(root)
            self.accounts.put(key, state)
            logger.info("trade %s nonce=%d root=%s", hex32(key), state.nonce, hex32(root))

    def execute_batch_updates(self, updates: Iterable) -> List[Tuple[int, int]]:
        # validate everything before touching state
        try:
            entries = iter(updates)
        except TypeError as e:
            raise InvalidInput(f"batch must be an iterable of updates, got {updates!r}") from e
        prepared = []
        for entry in entries:
            u = _as_update(entry)
            prepared.append((hash_key(u.user, u.token), parse_amount(u.balance)))

        with self._lock:
            applied = []
            for key, balance in prepared:
                state = AccountState(balance=balance, nonce=self._current_nonce(key) + 1)
                leaf = self._apply(key, state)
                applied.append((key, leaf))
                logger.debug("batch entry %s nonce=%d", hex32(key), state.nonce)
            root = self.store.root
            self.history.append(root)
            logger.info("batch of %d applied root=%s", len(applied), hex32(root))
            return applied

    def delete_key(self, user: str, token: str):
        key = hash_key(user, token)
        with self._lock:
            state = self.accounts.get(key)
            if state is None:
                return
            self.tombstones.record_deletion(key, state.nonce)
            self.store.delete(key)
            self.accounts.remove(key)
            logger.info("deleted %s at nonce=%d", hex32(key), state.nonce)

    def checkpoint(self) -> int:
        with self._lock:
            root = self.store.root
            self.history.append(root)
            logger.info("checkpoint #%d root=%s", len(self.history) - 1, hex32(root))
            return root

    # ---------------- reads ----------------

    @property
    def root(self) -> int:
        with self._lock:
            return self.store.root

    def account_key(self, user: str, token: str) -> int:
        return hash_key(user, token)

    def get_user_state(self, user: str, token: str) -> Optional[AccountState]:
        key = hash_key(user, token)
        with self._lock:
            return self.accounts.get(key)

    def get_root_history(self) -> List[int]:
        with self._lock:
            return self.history.snapshot()

    def prove(self, user: str, token: str) -> SmtProof:
        key = hash_key(user, token)
        with self._lock:
            return self.store.create_proof(key)

    def verify_proof(self, proof: SmtProof, root: Optional[int] = None) -> bool:
        return verify_proof(proof, root)

    def check_consistency(self) -> bool:
        """Index and tree agree on every key, and no active tombstone is live."""
        with self._lock:
            if len(self.accounts) != len(self.store):
                return False
            for key, state in self.accounts.items():
                if self.store.get(key) != hash_leaf(state.balance, state.nonce):
                    return False
            return all(k not in self.store for k in self.tombstones.active(self.accounts))
