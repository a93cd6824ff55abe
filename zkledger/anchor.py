# anchor.py
# Publish ledger roots to a CreditAnchor-style contract: anchor(uint256 blockId, bytes32 root).
#
#   block id = uint256( sha256("smt|" + root_hex_without_0x) )
#
# Everything except send_anchor_with_bump, read_anchored_root and anchor_root
# is pure and needs no RPC.

import hashlib
import json
import logging
from datetime import datetime, timezone
from time import sleep
from typing import Optional, Tuple

from web3 import Web3

from .smt_state import hex32

logger = logging.getLogger(__name__)

ANCHOR_ABI = [{
  "inputs": [{"internalType": "uint256", "name": "blockId", "type": "uint256"},
             {"internalType": "bytes32", "name": "root", "type": "bytes32"}],
  "name": "anchor", "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
  "stateMutability": "nonpayable", "type": "function"
}, {
  "inputs": [{"internalType": "uint256", "name": "blockId", "type": "uint256"}],
  "name": "roots", "outputs": [{"internalType": "bytes32", "name": "", "type": "bytes32"}],
  "stateMutability": "view", "type": "function"
}]


def root_to_hex(root: int) -> str:
    return hex32(root)


def root_to_bytes32(root: int) -> bytes:
    return root.to_bytes(32, "big")


def derive_block_id(root: int) -> int:
    raw = root_to_hex(root)[2:]
    digest = hashlib.sha256(("smt|" + raw).encode()).hexdigest()
    return int(digest, 16) % (2**256)


def canonical_json(d: dict) -> str:
    return json.dumps(d, separators=(",", ":"), sort_keys=True)


def build_checkpoint_receipt(root: int, history_index: int, chain: str,
                             contract: Optional[str] = None, tx: Optional[str] = None) -> dict:
    return {
        "type": "smt_anchor",
        "chain": chain,
        "contract": contract,
        "history_index": history_index,
        "onchain_block_id": str(derive_block_id(root)),
        "state_root": root_to_hex(root),
        "tx": tx,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }


def _bump(fee):
    # ~12.5% bump (clients typically require >=10%)
    return int(fee + fee // 8)


def send_anchor_with_bump(w3, acct, contract, block_id: int, root_bytes: bytes, chain_id: int,
                          attempts: int = 3, wait_receipt: bool = True, wait_timeout: int = 90) -> str:
    base = w3.eth.get_block("pending")["baseFeePerGas"]
    max_priority = w3.to_wei(2, "gwei")
    max_fee = base * 2 + max_priority

    # pending nonce so a mined nonce is never reused
    nonce = w3.eth.get_transaction_count(acct.address, "pending")

    last_exc = None
    for i in range(attempts):
        tx = contract.functions.anchor(block_id, root_bytes).build_transaction({
            "from": acct.address,
            "nonce": nonce,
            "gas": 200000,
            "maxFeePerGas": max_fee,
            "maxPriorityFeePerGas": max_priority,
            "chainId": chain_id,
        })
        signed = w3.eth.account.sign_transaction(tx, acct.key)
        # web3 v6: raw_transaction ; v5: rawTransaction
        raw = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction")
        try:
            tx_hash = w3.eth.send_raw_transaction(raw)
        except ValueError as e:
            msg = str(e)
            last_exc = e
            if "underpriced" in msg or "fee too low" in msg:
                max_fee = _bump(max_fee)
                max_priority = _bump(max_priority)
                logger.warning("anchor attempt %d underpriced, bumping fees to %d/%d", i + 1, max_fee, max_priority)
                sleep(2)
                continue
            if "nonce too low" in msg:
                nonce = w3.eth.get_transaction_count(acct.address, "pending")
                logger.warning("anchor attempt %d nonce too low, retrying with %d", i + 1, nonce)
                sleep(1)
                continue
            raise
        txh_hex = tx_hash.hex() if hasattr(tx_hash, "hex") else str(tx_hash)
        if wait_receipt:
            w3.eth.wait_for_transaction_receipt(tx_hash, timeout=wait_timeout)
        logger.info("anchored block_id=%d tx=%s", block_id, txh_hex)
        return txh_hex

    raise last_exc if last_exc else RuntimeError("Failed to anchor after retries.")


def read_anchored_root(contract, block_id: int) -> int:
    res = contract.functions.roots(block_id).call()
    # web3 returns HexBytes or bytes depending on version
    return int.from_bytes(bytes(res), "big")


def anchor_root(root: int, rpc_url: str, private_key: str, contract_address: str, **kw) -> Tuple[str, int]:
    """Anchor `root`, then read it back. Returns (tx hash, root stored on-chain)."""
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    acct = w3.eth.account.from_key(private_key)
    c = w3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=ANCHOR_ABI)
    block_id = derive_block_id(root)
    tx = send_anchor_with_bump(w3, acct, c, block_id, root_to_bytes32(root), w3.eth.chain_id, **kw)
    return tx, read_anchored_root(c, block_id)
