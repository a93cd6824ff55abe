# config.py
# env (optional, .env is loaded if present):
#   ZKLEDGER_LOG_LEVEL=INFO
#   CHAIN_NAME=sepolia
#   WEB3_RPC_URL=https://sepolia.infura.io/v3/<KEY>
#   ANCHOR_CONTRACT_ADDRESS=0x<CreditAnchor>
#   PRIVATE_KEY=0x<your_test_key>     (only for `zkledger anchor`)

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from .field import canonicalize_address


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    chain_name: str = "sepolia"
    rpc_url: Optional[str] = None
    anchor_contract: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        contract = os.getenv("ANCHOR_CONTRACT_ADDRESS") or None
        return cls(
            log_level=os.getenv("ZKLEDGER_LOG_LEVEL", "INFO").upper(),
            chain_name=os.getenv("CHAIN_NAME", "sepolia"),
            rpc_url=os.getenv("WEB3_RPC_URL") or None,
            anchor_contract=canonicalize_address(contract) if contract else None,
            private_key=os.getenv("PRIVATE_KEY") or None,
        )


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
