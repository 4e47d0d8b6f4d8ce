"""
Pay-per-request gate for the analysis endpoint.

Clients pay with an x402 payment header (X-PAYMENT). The header is checked
against the configured price and destination by the payment facilitator
before the analysis runs.
"""

import base64
import json
import re

import requests
from fastapi import Header, HTTPException

from config import (
    ANALYSIS_PRICE_USD,
    PAYMENT_FACILITATOR_URL,
    PAYMENT_NETWORK,
    PAYMENT_REQUIRED,
    RECEIVE_ADDRESS,
)

X402_VERSION = 1
USDC_DECIMALS = 6
# USDC contract per payment network
USDC_ASSETS = {
    "base": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    "base-sepolia": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
}


def to_base_units(amount_str: str, decimals: int) -> str:
    """Convert decimal amount to base units."""
    amount = (amount_str or "").strip()
    if not re.fullmatch(r"\d*\.?\d+", amount):
        raise HTTPException(status_code=503, detail=f"Invalid analysis price: {amount_str}")

    if "." in amount:
        int_part, frac_part = amount.split(".", 1)
    else:
        int_part, frac_part = amount, ""

    int_part = int_part or "0"
    frac_padded = (frac_part + ("0" * decimals))[:decimals]
    normalized = f"{int(int_part)}{frac_padded}".lstrip("0")
    return normalized or "0"


def payment_requirements(resource: str = "/api/analyze") -> dict:
    """Price and destination the client must pay before analysis."""
    if not RECEIVE_ADDRESS:
        raise HTTPException(
            status_code=503,
            detail="Payment service is not configured: RECEIVE_ADDRESS is missing",
        )
    asset = USDC_ASSETS.get(PAYMENT_NETWORK)
    if not asset:
        raise HTTPException(
            status_code=503,
            detail=f"Payment service is not configured: unsupported network {PAYMENT_NETWORK}",
        )
    return {
        "scheme": "exact",
        "network": PAYMENT_NETWORK,
        "maxAmountRequired": to_base_units(ANALYSIS_PRICE_USD, USDC_DECIMALS),
        "resource": resource,
        "description": "Long-term DeFi position analysis",
        "mimeType": "application/json",
        "payTo": RECEIVE_ADDRESS,
        "maxTimeoutSeconds": 60,
        "asset": asset,
    }


def payment_required_error(requirements: dict, error: str) -> HTTPException:
    return HTTPException(
        status_code=402,
        detail={"x402Version": X402_VERSION, "error": error, "accepts": [requirements]},
    )


def decode_payment_header(header: str) -> dict:
    try:
        payload = json.loads(base64.b64decode(header, validate=True))
    except ValueError as exc:
        raise ValueError("X-PAYMENT header is not base64-encoded JSON") from exc
    if not isinstance(payload, dict):
        raise ValueError("X-PAYMENT header must encode a JSON object")
    return payload


def facilitator_verify(payment_payload: dict, requirements: dict) -> dict:
    """Ask the facilitator whether the payment satisfies the requirements."""
    url = f"{PAYMENT_FACILITATOR_URL}/verify"
    body = {
        "x402Version": X402_VERSION,
        "paymentPayload": payment_payload,
        "paymentRequirements": requirements,
    }
    try:
        response = requests.post(url, json=body, timeout=25)
    except requests.RequestException as exc:
        raise HTTPException(status_code=502, detail=f"Payment facilitator request failed: {exc}") from exc

    if not response.ok:
        raise HTTPException(
            status_code=502,
            detail=f"Payment facilitator error ({response.status_code}): {response.text[:500]}",
        )

    try:
        data = response.json()
    except ValueError as exc:
        raise HTTPException(status_code=502, detail="Payment facilitator returned invalid JSON") from exc

    if not isinstance(data, dict):
        raise HTTPException(status_code=502, detail="Unexpected payment facilitator response")
    return data


def require_payment(x_payment: str | None = Header(default=None)) -> dict | None:
    """FastAPI dependency: let the request through only once paid."""
    if not PAYMENT_REQUIRED:
        return None

    requirements = payment_requirements()
    if not x_payment:
        raise payment_required_error(requirements, "X-PAYMENT header is required")

    try:
        payment_payload = decode_payment_header(x_payment)
    except ValueError as e:
        raise payment_required_error(requirements, str(e))

    verification = facilitator_verify(payment_payload, requirements)
    if not verification.get("isValid"):
        reason = verification.get("invalidReason") or "payment rejected"
        print(f"[Payment] Rejected payment: {reason}", flush=True)
        raise payment_required_error(requirements, reason)

    print(f"[Payment] Verified payment from {verification.get('payer', '?')}", flush=True)
    return verification
