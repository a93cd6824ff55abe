# cli.py
# Replay a JSON list of ledger operations and print the resulting roots/states.
#
# usage:
#   zkledger replay ops.json [--prove USER TOKEN] [--compressed] [--receipt]
#   zkledger key USER TOKEN
#   zkledger anchor ops.json         (needs WEB3_RPC_URL, PRIVATE_KEY, ANCHOR_CONTRACT_ADDRESS)
#
# ops.json:
#   [{"op": "add",   "user": "0x..", "token": "0x..", "amount": 1000},
#    {"op": "trade", "user": "0x..", "token": "0x..", "balance": 500},
#    {"op": "batch", "updates": [{"user": "0x..", "token": "0x..", "balance": 650}]},
#    {"op": "delete", "user": "0x..", "token": "0x.."},
#    {"op": "checkpoint"}]
#
# exit codes:
#   0 = ok
#   1 = bad input / ops file / anchor config
#   2 = proof did not verify
#   3 = anchored root read back from the contract does not match

import argparse
import json
import logging
import sys
from pathlib import Path

from .anchor import anchor_root, build_checkpoint_receipt, root_to_hex
from .config import Settings, configure_logging
from .errors import KeyAlreadyExists, KeyNotFound
from .hashing import hash_key
from .ledger import Ledger
from .smt_state import hex32

logger = logging.getLogger(__name__)


def load_ops(path: str) -> list:
    try:
        ops = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"cannot read ops file {path}: {e}") from e
    if not isinstance(ops, list):
        raise ValueError("ops file must hold a JSON list")
    return ops


def apply_op(ledger: Ledger, op: dict):
    if not isinstance(op, dict):
        raise ValueError(f"op must be a JSON object, got {op!r}")
    kind = op.get("op")
    if kind == "add":
        ledger.add_balance(op["user"], op["token"], op["amount"])
    elif kind == "trade":
        ledger.execute_single_trade_update(op["user"], op["token"], op["balance"])
    elif kind == "batch":
        if not isinstance(op["updates"], list):
            raise ValueError("batch updates must be a JSON list")
        ledger.execute_batch_updates(op["updates"])
    elif kind == "delete":
        ledger.delete_key(op["user"], op["token"])
    elif kind == "checkpoint":
        ledger.checkpoint()
    else:
        raise ValueError(f"unknown op {kind!r}")


def replay(ops: list) -> Ledger:
    ledger = Ledger()
    for i, op in enumerate(ops):
        try:
            apply_op(ledger, op)
        except (KeyNotFound, KeyAlreadyExists):
            raise
        except KeyError as e:
            raise ValueError(f"op #{i} missing field {e}") from e
        except ValueError as e:
            kind = op.get("op") if isinstance(op, dict) else None
            raise ValueError(f"op #{i} ({kind}): {e}") from e
    logger.info("replayed %d ops, %d accounts, root=%s", len(ops), len(ledger.accounts), hex32(ledger.root))
    return ledger


def summarize(ledger: Ledger) -> dict:
    return {
        "state_root": root_to_hex(ledger.root),
        "root_history": [root_to_hex(r) for r in ledger.get_root_history()],
        "accounts": [dict(key=hex32(k), **s.to_dict()) for k, s in ledger.accounts.items()],
        "tombstones": {hex32(k): str(n) for k, n in ledger.tombstones.active(ledger.accounts).items()},
    }


def cmd_replay(args, settings: Settings) -> int:
    ledger = replay(load_ops(args.ops))
    out = summarize(ledger)
    code = 0
    if args.prove:
        proof = ledger.prove(*args.prove)
        ok = ledger.verify_proof(proof, ledger.root)
        out["proof"] = proof.to_dict()
        if args.compressed:
            out["proof"]["proof"] = proof.compress()
        out["proof"]["local_verify_ok"] = ok
        if not ok:
            code = 2
    if args.receipt:
        out["receipt"] = build_checkpoint_receipt(
            ledger.root, len(ledger.get_root_history()) - 1, settings.chain_name, settings.anchor_contract)
    print(json.dumps(out, indent=2))
    return code


def cmd_key(args, settings: Settings) -> int:
    print(hex32(hash_key(args.user, args.token)))
    return 0


def cmd_anchor(args, settings: Settings) -> int:
    if not (settings.rpc_url and settings.private_key and settings.anchor_contract):
        raise ValueError("Set WEB3_RPC_URL, PRIVATE_KEY, ANCHOR_CONTRACT_ADDRESS")
    ledger = replay(load_ops(args.ops))
    root = ledger.checkpoint()
    tx, stored = anchor_root(root, settings.rpc_url, settings.private_key, settings.anchor_contract)
    receipt = build_checkpoint_receipt(root, len(ledger.get_root_history()) - 1,
                                       settings.chain_name, settings.anchor_contract, tx)
    receipt["onchain_root"] = root_to_hex(stored)
    receipt["onchain_match"] = stored == root
    print(json.dumps(receipt, indent=2))
    if stored != root:
        logger.error("contract holds %s for block id, expected %s", hex32(stored), hex32(root))
        return 3
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="zkledger", description="SMT balance ledger tools")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("replay", help="apply an ops file to a fresh ledger")
    p.add_argument("ops", help="JSON list of operations")
    p.add_argument("--prove", nargs=2, metavar=("USER", "TOKEN"), help="include a proof for this account")
    p.add_argument("--compressed", action="store_true", help="drop default siblings from the proof")
    p.add_argument("--receipt", action="store_true", help="include a checkpoint receipt for the final root")
    p.set_defaults(func=cmd_replay)

    p = sub.add_parser("key", help="print the account key of USER/TOKEN")
    p.add_argument("user")
    p.add_argument("token")
    p.set_defaults(func=cmd_key)

    p = sub.add_parser("anchor", help="replay, checkpoint and anchor the root on-chain")
    p.add_argument("ops")
    p.set_defaults(func=cmd_anchor)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = Settings.from_env()
        configure_logging(settings)
        return args.func(args, settings)
    except ValueError as e:
        print("Error:", e, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
