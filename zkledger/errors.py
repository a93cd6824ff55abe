# errors.py
# Exception taxonomy for the ledger.
#   InvalidAddress / InvalidInput -> caller errors, raised before any mutation
#   KeyNotFound / KeyAlreadyExists -> commitment store contract breaches (fatal)


class LedgerError(Exception):
    pass


class InvalidAddress(LedgerError, ValueError):
    pass


class InvalidInput(LedgerError, ValueError):
    pass


class KeyNotFound(LedgerError, KeyError):
    pass


class KeyAlreadyExists(LedgerError, KeyError):
    pass
