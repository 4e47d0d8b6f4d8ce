"""Long-term / short-term partitioning of analyzed positions."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Summary:
    total_long_term_positions: int = 0
    total_short_term_positions: int = 0
    eligible_for_long_term_gains: bool = False


@dataclass
class AnalysisResult:
    address: str
    analysis_date: datetime
    long_term_positions: list = field(default_factory=list)
    short_term_positions: list = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)

    def to_dict(self) -> dict:
        """JSON payload returned by /api/analyze."""
        return {
            "address": self.address,
            "analysisDate": self.analysis_date.isoformat(),
            "longTermPositions": [serialize_position(p) for p in self.long_term_positions],
            "summary": {
                "totalLongTermPositions": self.summary.total_long_term_positions,
                "totalShortTermPositions": self.summary.total_short_term_positions,
                "eligibleForLongTermGains": self.summary.eligible_for_long_term_gains,
            },
        }


def serialize_position(position) -> dict:
    return {
        "symbol": position.symbol,
        "balance": position.balance,
        "firstAcquired": position.first_acquired.isoformat(),
        "daysHeld": position.days_held,
        "tokenAddress": position.token_address,
    }


def summarize(address: str, positions: list, analysis_date: datetime) -> AnalysisResult:
    """Partition positions by is_long_term, keeping registry order."""
    long_term = [p for p in positions if p.is_long_term]
    short_term = [p for p in positions if not p.is_long_term]

    return AnalysisResult(
        address=address,
        analysis_date=analysis_date,
        long_term_positions=long_term,
        short_term_positions=short_term,
        summary=Summary(
            total_long_term_positions=len(long_term),
            total_short_term_positions=len(short_term),
            eligible_for_long_term_gains=len(long_term) > 0,
        ),
    )
