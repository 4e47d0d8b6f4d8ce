import re

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from analyzer import PositionAnalysisFailed, analyze_wallet
from chain_client import ChainClient, get_chain_client
from config import LONG_TERM_DAYS, LOOKBACK_BLOCKS
from payment_gate import require_payment

router = APIRouter()


class AnalyzeRequest(BaseModel):
    """Request body for /api/analyze."""

    address: str | None = None


def validate_address(address: str | None) -> str:
    """Reject anything that is not a 0x-prefixed 20-byte hex address."""
    if not address:
        raise HTTPException(status_code=400, detail="Wallet address is required")
    address = address.strip()
    if len(address) != 42 or not address.startswith("0x") or not re.fullmatch(r"0x[a-fA-F0-9]{40}", address):
        raise HTTPException(status_code=400, detail="Invalid Ethereum address format")
    return address


@router.post("/api/analyze", dependencies=[Depends(require_payment)])
def analyze(body: AnalyzeRequest, client: ChainClient = Depends(get_chain_client)):
    """Find positions held long enough for long-term capital gains treatment."""
    address = validate_address(body.address)
    print(f"[Analyzer] Analyzing wallet: {address}", flush=True)

    try:
        result = analyze_wallet(client, address)
    except PositionAnalysisFailed as e:
        print(f"[Analyzer] Analysis failed for {address}: {e}", flush=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {e}") from e

    return result.to_dict()


@router.get("/api/health")
def health():
    return {"status": "ok", "lookback_blocks": LOOKBACK_BLOCKS, "long_term_days": LONG_TERM_DAYS}
