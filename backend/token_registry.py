"""
Tracked assets for holding-period analysis.

The registry is fixed at import time: the native asset plus a short,
ordered list of popular ERC-20 tokens on Ethereum mainnet.
"""

from dataclasses import dataclass

NATIVE_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class TokenDescriptor:
    symbol: str
    address: str
    decimals: int

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE_ADDRESS


NATIVE_ASSET = TokenDescriptor(symbol="ETH", address=NATIVE_ADDRESS, decimals=18)

TRACKED_TOKENS: tuple[TokenDescriptor, ...] = (
    TokenDescriptor("USDC", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", 6),
    TokenDescriptor("USDT", "0xdAC17F958D2ee523a2206206994597C13D831ec7", 6),
    TokenDescriptor("WETH", "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", 18),
    TokenDescriptor("WBTC", "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", 8),
    TokenDescriptor("DAI", "0x6B175474E89094C44Da98b954EedeAC495271d0F", 18),
)


def registry_with_native() -> list[TokenDescriptor]:
    """Native asset first, then ERC-20 tokens in declared order."""
    return [NATIVE_ASSET, *TRACKED_TOKENS]
