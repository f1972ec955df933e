from dataclasses import dataclass, field
from typing import Any


@dataclass
class CredentialRecord:
    credential: str
    index: int
    client: Any = None
    total_requests: int = 0
    success_count: int = 0
    consecutive_failures: int = 0
    rate_limit_hits: int = 0
    cooldown_until: float = 0.0  # 0.0 = not cooling
    last_used_at: float | None = None
    last_error_at: float | None = None
    last_error: str | None = None
    healthy: bool = True

    def is_cooling(self, now: float) -> bool:
        return self.cooldown_until > now

    def is_eligible(self, now: float) -> bool:
        return self.healthy and not self.is_cooling(now)

    def cool_until(self, until: float) -> None:
        self.cooldown_until = max(self.cooldown_until, until)

    def reset(self) -> None:
        self.cooldown_until = 0.0
        self.consecutive_failures = 0
        self.healthy = True


@dataclass
class PoolState:
    records: list[CredentialRecord] = field(default_factory=list)
    cursor: int = 0
    consecutive_exhausted: int = 0
    initialized: bool = False

    def __len__(self) -> int:
        return len(self.records)

    def next_cooldown_end(self, now: float) -> float:
        """Seconds until the soonest cooling record becomes usable; 0.0 if none is cooling."""
        ends = [r.cooldown_until for r in self.records if r.is_cooling(now)]
        if not ends:
            return 0.0
        return min(ends) - now
