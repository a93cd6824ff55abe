# accounts.py
# In-memory mirrors of the commitment store:
#   AccountIndex      key -> AccountState (live accounts)
#   TombstoneRegistry key -> last nonce of a deleted account (never cleared)

from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from .hashing import hash_leaf


@dataclass(frozen=True)
class AccountState:
    balance: int
    nonce: int

    @property
    def leaf(self) -> int:
        return hash_leaf(self.balance, self.nonce)

    def to_dict(self) -> dict:
        return {"balance": str(self.balance), "nonce": str(self.nonce)}


class AccountIndex:
    def __init__(self):
        self._states: Dict[int, AccountState] = {}

    def __len__(self):
        return len(self._states)

    def __contains__(self, key):
        return key in self._states

    def get(self, key: int) -> Optional[AccountState]:
        return self._states.get(key)

    def put(self, key: int, state: AccountState):
        self._states[key] = state

    def remove(self, key: int):
        self._states.pop(key, None)

    def keys(self) -> Iterator[int]:
        return iter(list(self._states))

    def items(self):
        return list(self._states.items())


class TombstoneRegistry:
    """
    Last nonce held by each deleted account.

    Entries are only ever written or overwritten. A live account in the
    AccountIndex takes precedence over its tombstone, so `active()` is the
    view that stays disjoint from the index.
    """

    def __init__(self):
        self._last: Dict[int, int] = {}

    def __len__(self):
        return len(self._last)

    def __contains__(self, key):
        return key in self._last

    def record_deletion(self, key: int, nonce: int):
        self._last[key] = nonce

    def last_nonce(self, key: int) -> Optional[int]:
        return self._last.get(key)

    def active(self, index: AccountIndex) -> Dict[int, int]:
        return {k: n for k, n in self._last.items() if k not in index}
