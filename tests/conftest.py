import pytest

from zkledger import Ledger

USER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
USER2 = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
TOKEN = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
TOKEN2 = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


@pytest.fixture
def ledger():
    return Ledger()

