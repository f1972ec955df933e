"""Read-only pool snapshots for monitoring and admin endpoints."""

import math
from dataclasses import asdict, dataclass, field

from .state import CredentialRecord

MASK_VISIBLE = 6
MASK_MIN_LENGTH = 12


def mask_credential(credential: str) -> str:
    """Mask a credential for logs and stats: first and last 6 chars, or ``***`` if short."""
    if len(credential) <= MASK_MIN_LENGTH:
        return "***"
    return f"{credential[:MASK_VISIBLE]}...{credential[-MASK_VISIBLE:]}"


def round_half_up(value: float) -> int:
    """Round halves up (12.5 -> 13); the builtin round() sends them to the even side."""
    return math.floor(value + 0.5)


def format_success_rate(success: int, total: int) -> str:
    if total <= 0:
        return "N/A"
    return f"{round_half_up(success / total * 100)}%"


def format_ago(then: float | None, now: float) -> str:
    if then is None:
        return "never"
    return f"{round_half_up(now - then)}s ago"


@dataclass
class CredentialStats:
    index: int
    masked_key: str
    is_healthy: bool
    is_cooling_down: bool
    cooldown_remaining_sec: int
    total_requests: int
    success_rate: str
    rate_limit_hits: int
    last_used_ago: str
    consecutive_failures: int = 0
    last_error: str | None = None

    @classmethod
    def from_record(cls, rec: CredentialRecord, now: float) -> "CredentialStats":
        cooling = rec.is_cooling(now)
        return cls(
            index=rec.index,
            masked_key=mask_credential(rec.credential),
            is_healthy=rec.healthy,
            is_cooling_down=cooling,
            cooldown_remaining_sec=round_half_up(rec.cooldown_until - now) if cooling else 0,
            total_requests=rec.total_requests,
            success_rate=format_success_rate(rec.success_count, rec.total_requests),
            rate_limit_hits=rec.rate_limit_hits,
            last_used_ago=format_ago(rec.last_used_at, now),
            consecutive_failures=rec.consecutive_failures,
            last_error=rec.last_error,
        )


@dataclass
class PoolStats:
    total_keys: int
    healthy_keys: int
    cooling_down_keys: int
    current_index: int
    keys: list[CredentialStats] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)
