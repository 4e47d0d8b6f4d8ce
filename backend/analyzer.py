"""
Position acquisition analyzer.

For one wallet, reads the current balance of every tracked asset, estimates
when each non-zero holding was first acquired and classifies it as long-term
or short-term.

Acquisition is estimated from the earliest inbound transfer inside a bounded
block window (LOOKBACK_BLOCKS). A holding with no inbound transfer in the
window is treated as acquired "now": older history was never inspected, so
it is never reported as long-term.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from aggregator import AnalysisResult, summarize
from chain_client import ChainClient, ChainQueryFailed, ChainQueryTimeout
from config import ANALYSIS_MAX_WORKERS, LONG_TERM_DAYS, LOOKBACK_BLOCKS, TRACE_NATIVE_TRANSFERS
from token_registry import TokenDescriptor, registry_with_native


class PositionAnalysisFailed(Exception):
    """The analysis could not produce any usable result."""


class SkipReason(Enum):
    ZERO_BALANCE = "zero_balance"
    QUERY_FAILED = "query_failed"
    TIMEOUT = "timeout"


@dataclass
class Position:
    symbol: str
    token_address: str
    raw_balance: int
    balance: str
    first_acquired: datetime
    days_held: int
    is_long_term: bool


@dataclass
class PositionOutcome:
    """Per-token result: either a Position or the reason the token was skipped."""
    token: TokenDescriptor
    position: Position | None = None
    skip_reason: SkipReason | None = None
    detail: str = ""

    @property
    def failed(self) -> bool:
        return self.skip_reason in (SkipReason.QUERY_FAILED, SkipReason.TIMEOUT)


@dataclass(frozen=True)
class BlockWindow:
    from_block: int
    to_block: int


def format_units(raw_balance: int, decimals: int) -> str:
    """Render an integer amount of smallest units as an exact decimal string."""
    if raw_balance < 0:
        raise ValueError("raw balance cannot be negative")
    if decimals == 0:
        return str(raw_balance)

    int_part, frac_part = divmod(raw_balance, 10 ** decimals)
    frac = str(frac_part).rjust(decimals, "0").rstrip("0")
    return f"{int_part}.{frac}" if frac else str(int_part)


def days_between(start: datetime, end: datetime) -> int:
    if start >= end:
        return 0
    return (end - start) // timedelta(days=1)


def search_window(latest_block: int, lookback_blocks: int = LOOKBACK_BLOCKS) -> BlockWindow:
    return BlockWindow(from_block=max(0, latest_block - lookback_blocks), to_block=latest_block)


def find_first_acquired(client: ChainClient, token: TokenDescriptor, address: str,
                        window: BlockWindow, now: datetime,
                        trace_native_transfers: bool = TRACE_NATIVE_TRANSFERS) -> datetime:
    """Timestamp of the earliest inbound transfer in the window, or `now`."""
    if token.is_native:
        if not trace_native_transfers:
            return now
        events = client.get_inbound_native_transfers(address, window.from_block, window.to_block)
    else:
        events = client.get_inbound_transfer_logs(token.address, address, window.from_block, window.to_block)

    if not events:
        return now

    acquired = client.get_block_timestamp(events[0].block_number)
    return min(acquired, now)


def analyze_token(client: ChainClient, token: TokenDescriptor, address: str,
                  window: BlockWindow, now: datetime,
                  long_term_days: int = LONG_TERM_DAYS,
                  trace_native_transfers: bool = TRACE_NATIVE_TRANSFERS) -> PositionOutcome:
    """Run the balance -> acquisition -> classification pipeline for one token."""
    try:
        if token.is_native:
            raw_balance = client.get_native_balance(address)
        else:
            raw_balance = client.get_token_balance(token.address, address)

        if raw_balance == 0:
            return PositionOutcome(token=token, skip_reason=SkipReason.ZERO_BALANCE)

        decimals = token.decimals if token.is_native else client.get_token_decimals(token.address)
        first_acquired = find_first_acquired(client, token, address, window, now, trace_native_transfers)
    except ChainQueryTimeout as e:
        print(f"[Analyzer] {token.symbol}: timed out in {e.operation}, skipping", flush=True)
        return PositionOutcome(token=token, skip_reason=SkipReason.TIMEOUT, detail=str(e))
    except ChainQueryFailed as e:
        print(f"[Analyzer] {token.symbol}: {e}, skipping", flush=True)
        return PositionOutcome(token=token, skip_reason=SkipReason.QUERY_FAILED, detail=str(e))

    days_held = days_between(first_acquired, now)
    position = Position(
        symbol=token.symbol,
        token_address=token.address,
        raw_balance=raw_balance,
        balance=format_units(raw_balance, decimals),
        first_acquired=first_acquired,
        days_held=days_held,
        is_long_term=days_held >= long_term_days,
    )
    return PositionOutcome(token=token, position=position)


def analyze_positions(
    client: ChainClient,
    address: str,
    tokens: list[TokenDescriptor] | None = None,
    *,
    now: datetime | None = None,
    lookback_blocks: int = LOOKBACK_BLOCKS,
    max_workers: int = ANALYSIS_MAX_WORKERS,
    long_term_days: int = LONG_TERM_DAYS,
    trace_native_transfers: bool = TRACE_NATIVE_TRANSFERS,
) -> list[PositionOutcome]:
    """Analyze every tracked token for `address`.

    Per-token pipelines run on a bounded thread pool; outcomes are returned
    in registry order regardless of completion order.

    Raises:
        PositionAnalysisFailed: the node is unreachable, or no token could
            be read at all.
    """
    if tokens is None:
        tokens = registry_with_native()
    now = now or datetime.now(timezone.utc)

    try:
        latest_block = client.get_latest_block_number()
    except ChainQueryFailed as e:
        raise PositionAnalysisFailed(f"chain data unavailable: {e}") from e

    window = search_window(latest_block, lookback_blocks)
    print(f"[Analyzer] {address}: {len(tokens)} tokens, blocks {window.from_block}..{window.to_block}", flush=True)

    executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="analyzer")
    try:
        futures = [
            executor.submit(analyze_token, client, token, address, window, now,
                            long_term_days, trace_native_transfers)
            for token in tokens
        ]
        outcomes = [future.result() for future in futures]
    except BaseException:
        # Request aborted: drop pipelines that have not started yet
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown()

    if outcomes and all(o.failed for o in outcomes):
        raise PositionAnalysisFailed(f"all {len(outcomes)} token queries failed for {address}")

    skipped = sum(1 for o in outcomes if o.failed)
    if skipped:
        print(f"[Analyzer] {address}: {skipped}/{len(outcomes)} tokens skipped after errors", flush=True)
    return outcomes


def collect_positions(outcomes: list[PositionOutcome]) -> list[Position]:
    return [o.position for o in outcomes if o.position is not None]


def analyze_wallet(client: ChainClient, address: str, tokens: list[TokenDescriptor] | None = None,
                   *, now: datetime | None = None, **options) -> AnalysisResult:
    """Full analysis for one wallet: positions plus long/short-term summary."""
    now = now or datetime.now(timezone.utc)
    outcomes = analyze_positions(client, address, tokens, now=now, **options)
    return summarize(address, collect_positions(outcomes), now)
