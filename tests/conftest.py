import time
from datetime import datetime, timedelta, timezone

import pytest

from chain_client import ChainQueryFailed, TransferEvent
from token_registry import NATIVE_ASSET, TRACKED_TOKENS

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
LATEST_BLOCK = 20_000_000
WALLET = "0x1111111111111111111111111111111111111111"


def token(symbol: str):
    if symbol == NATIVE_ASSET.symbol:
        return NATIVE_ASSET
    return next(t for t in TRACKED_TOKENS if t.symbol == symbol)


class FakeChainClient:
    """In-memory stand-in for ChainClient with a frozen chain state."""

    def __init__(self, latest_block=LATEST_BLOCK):
        self.latest_block = latest_block
        self.native_balance = 0
        self.balances: dict[str, int] = {}
        self.decimals: dict[str, int] = {t.address.lower(): t.decimals for t in TRACKED_TOKENS}
        self.transfers: dict[str, list[TransferEvent]] = {}
        self.native_transfers: list[TransferEvent] = []
        self.block_times: dict[int, datetime] = {}
        self.failing: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self.unreachable = False
        self.log_queries: list[tuple] = []
        self._next_block = 1_000

    # Test helpers

    def hold(self, symbol: str, raw_balance: int, acquired_at: datetime | None = None, block=None):
        """Give the wallet a balance, optionally with an inbound transfer at acquired_at."""
        if symbol == NATIVE_ASSET.symbol:
            self.native_balance = raw_balance
        else:
            self.balances[token(symbol).address.lower()] = raw_balance
        if acquired_at is not None:
            self.receive(symbol, acquired_at, block=block)

    def receive(self, symbol: str, at: datetime, block=None):
        if block is None:
            block = self.latest_block - self._next_block
            self._next_block += 1_000
        self.block_times[block] = at
        event = TransferEvent(block_number=block, log_index=0, transaction_hash=f"0x{block:064x}",
                              sender="0x" + "22" * 20, value=1)
        if symbol == NATIVE_ASSET.symbol:
            self.native_transfers.append(event)
            self.native_transfers.sort(key=lambda e: (e.block_number, e.log_index))
        else:
            events = self.transfers.setdefault(token(symbol).address.lower(), [])
            events.append(event)
            events.sort(key=lambda e: (e.block_number, e.log_index))

    def fail(self, symbol: str, exc: Exception | None = None):
        self.failing[token(symbol).address.lower()] = exc or ChainQueryFailed("getTokenBalance", "boom")

    def _check(self, address: str):
        key = address.lower()
        if key in self.delays:
            time.sleep(self.delays[key])
        if key in self.failing:
            raise self.failing[key]

    # ChainClient interface

    def get_latest_block_number(self) -> int:
        if self.unreachable:
            raise ChainQueryFailed("getLatestBlockNumber", "connection refused")
        return self.latest_block

    def get_native_balance(self, address: str) -> int:
        self._check(NATIVE_ASSET.address)
        return self.native_balance

    def get_token_balance(self, token_address: str, owner_address: str) -> int:
        self._check(token_address)
        return self.balances.get(token_address.lower(), 0)

    def get_token_decimals(self, token_address: str) -> int:
        return self.decimals[token_address.lower()]

    def get_inbound_transfer_logs(self, token_address, owner_address, from_block, to_block):
        self.log_queries.append((token_address, owner_address, from_block, to_block))
        events = self.transfers.get(token_address.lower(), [])
        return [e for e in events if from_block <= e.block_number <= to_block]

    def get_inbound_native_transfers(self, owner_address, from_block, to_block):
        return [e for e in self.native_transfers if from_block <= e.block_number <= to_block]

    def get_block_timestamp(self, block_number: int) -> datetime:
        return self.block_times[block_number]


@pytest.fixture
def chain():
    return FakeChainClient()


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)
