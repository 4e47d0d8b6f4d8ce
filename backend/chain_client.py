"""
Read-only Ethereum JSON-RPC client used by the holdings analyzer.

Every call is a single request/response against the configured node with a
finite timeout. Failures are raised as ChainQueryFailed; nothing is retried
here, retry policy belongs to the caller.
"""

import itertools
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

import requests

from config import ETH_RPC_URL, RPC_TIMEOUT_SECONDS

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
BALANCE_OF_SELECTOR = "0x70a08231"
DECIMALS_SELECTOR = "0x313ce567"


class ChainQueryFailed(Exception):
    """A single chain-data call failed (transport, node or response error)."""

    def __init__(self, operation: str, cause):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class ChainQueryTimeout(ChainQueryFailed):
    """The node did not answer within the client timeout."""


@dataclass(frozen=True)
class TransferEvent:
    block_number: int
    log_index: int
    transaction_hash: str
    sender: str
    value: int


def pad_address(address: str) -> str:
    """Left-pad a 20-byte address to a 32-byte hex word (no 0x)."""
    return address.lower().removeprefix("0x").rjust(64, "0")


def topic_to_address(topic: str) -> str:
    return "0x" + topic[-40:].lower()


def parse_quantity(value, operation: str) -> int:
    """Parse a JSON-RPC hex quantity (or hex data word) into an int."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ChainQueryFailed(operation, f"malformed quantity: {value!r}")
    if value == "0x":
        return 0
    try:
        return int(value, 16)
    except ValueError as exc:
        raise ChainQueryFailed(operation, f"malformed quantity: {value!r}") from exc


class ChainClient:
    """JSON-RPC 2.0 client over a shared requests session."""

    def __init__(self, rpc_url: str = ETH_RPC_URL, timeout: float = RPC_TIMEOUT_SECONDS,
                 session: requests.Session | None = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)
        # decimals() never changes for a deployed token
        self._decimals_cache: dict[str, int] = {}
        self._decimals_lock = threading.Lock()

    def _rpc(self, method: str, params: list, operation: str):
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self.session.post(
                self.rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise ChainQueryTimeout(operation, exc) from exc
        except requests.RequestException as exc:
            raise ChainQueryFailed(operation, exc) from exc

        if not response.ok:
            raise ChainQueryFailed(operation, f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ChainQueryFailed(operation, "node returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise ChainQueryFailed(operation, "unexpected JSON-RPC response")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise ChainQueryFailed(operation, f"node error: {message}")
        if "result" not in data:
            raise ChainQueryFailed(operation, "JSON-RPC response has no result")
        return data["result"]

    def _call(self, to: str, data: str, operation: str) -> int:
        result = self._rpc("eth_call", [{"to": to, "data": data}, "latest"], operation)
        return parse_quantity(result, operation)

    def get_latest_block_number(self) -> int:
        result = self._rpc("eth_blockNumber", [], "getLatestBlockNumber")
        return parse_quantity(result, "getLatestBlockNumber")

    def get_native_balance(self, address: str) -> int:
        result = self._rpc("eth_getBalance", [address, "latest"], "getNativeBalance")
        return parse_quantity(result, "getNativeBalance")

    def get_token_balance(self, token_address: str, owner_address: str) -> int:
        data = BALANCE_OF_SELECTOR + pad_address(owner_address)
        return self._call(token_address, data, "getTokenBalance")

    def get_token_decimals(self, token_address: str) -> int:
        key = token_address.lower()
        with self._decimals_lock:
            if key in self._decimals_cache:
                return self._decimals_cache[key]

        decimals = self._call(token_address, DECIMALS_SELECTOR, "getTokenDecimals")
        if decimals > 255:
            raise ChainQueryFailed("getTokenDecimals", f"implausible decimals: {decimals}")

        with self._decimals_lock:
            self._decimals_cache[key] = decimals
        return decimals

    def get_block_timestamp(self, block_number: int) -> datetime:
        block = self._rpc("eth_getBlockByNumber", [hex(block_number), False], "getBlockTimestamp")
        if not isinstance(block, dict):
            raise ChainQueryFailed("getBlockTimestamp", f"block {block_number} not found")
        ts = parse_quantity(block.get("timestamp"), "getBlockTimestamp")
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, ValueError, OSError) as exc:
            raise ChainQueryFailed("getBlockTimestamp", f"timestamp out of range: {ts}") from exc

    def get_inbound_transfer_logs(self, token_address: str, owner_address: str,
                                  from_block: int, to_block: int) -> list[TransferEvent]:
        """ERC-20 Transfer events into owner_address, ascending by (block, log index)."""
        operation = "getInboundTransferLogs"
        log_filter = {
            "address": token_address,
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
            "topics": [TRANSFER_TOPIC, None, "0x" + pad_address(owner_address)],
        }
        logs = self._rpc("eth_getLogs", [log_filter], operation)
        if not isinstance(logs, list):
            raise ChainQueryFailed(operation, "expected a list of logs")

        events = []
        for log in logs:
            if not isinstance(log, dict):
                raise ChainQueryFailed(operation, f"malformed log entry: {log!r}")
            if log.get("removed"):
                continue
            topics = log.get("topics") or []
            if not isinstance(topics, list) or len(topics) < 3 or not isinstance(topics[1], str):
                raise ChainQueryFailed(operation, "Transfer log without indexed addresses")
            events.append(TransferEvent(
                block_number=parse_quantity(log.get("blockNumber"), operation),
                log_index=parse_quantity(log.get("logIndex"), operation),
                transaction_hash=log.get("transactionHash") or "",
                sender=topic_to_address(topics[1]),
                value=parse_quantity(log.get("data"), operation),
            ))

        events.sort(key=lambda e: (e.block_number, e.log_index))
        return events

    def get_inbound_native_transfers(self, owner_address: str,
                                     from_block: int, to_block: int) -> list[TransferEvent]:
        """Value-carrying call traces into owner_address (needs trace_filter support)."""
        operation = "getInboundNativeTransfers"
        trace_filter = {
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
            "toAddress": [owner_address.lower()],
        }
        traces = self._rpc("trace_filter", [trace_filter], operation)
        if not isinstance(traces, list):
            raise ChainQueryFailed(operation, "expected a list of traces")

        events = []
        for trace in traces:
            if not isinstance(trace, dict):
                raise ChainQueryFailed(operation, f"malformed trace entry: {trace!r}")
            if trace.get("type") != "call" or trace.get("error"):
                continue
            action = trace.get("action") or {}
            if not isinstance(action, dict):
                raise ChainQueryFailed(operation, f"malformed trace action: {action!r}")
            value = parse_quantity(action.get("value", "0x0"), operation)
            if value == 0:
                continue
            block_number = trace.get("blockNumber")
            if not isinstance(block_number, int):
                raise ChainQueryFailed(operation, f"malformed trace block: {block_number!r}")
            position = trace.get("transactionPosition")
            sender = action.get("from")
            events.append(TransferEvent(
                block_number=block_number,
                log_index=position if isinstance(position, int) else 0,
                transaction_hash=trace.get("transactionHash") or "",
                sender=sender.lower() if isinstance(sender, str) else "",
                value=value,
            ))

        events.sort(key=lambda e: (e.block_number, e.log_index))
        return events


# Global client instance (one session shared across requests)
_client_instance: ChainClient | None = None


def get_chain_client() -> ChainClient:
    """Get global chain client (singleton, also used as a FastAPI dependency)."""
    global _client_instance
    if _client_instance is None:
        _client_instance = ChainClient()
        print(f"[Chain] Using RPC endpoint {_client_instance.rpc_url}")
    return _client_instance
