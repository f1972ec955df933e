from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


class FailureKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    GENERIC = "generic"


@dataclass(frozen=True)
class AuthConfig:
    header: str = "Authorization"
    scheme: str = "Bearer"
    in_: Literal["header", "query"] = "header"
    query_param: str = "api_key"


@dataclass(frozen=True)
class PoolConfig:
    # Cooldowns (seconds)
    rate_limit_cooldown: float = 15 * 60
    error_cooldown: float = 2 * 60

    # Demote a credential after this many consecutive generic failures
    max_consecutive_failures: int = 5

    # Whole-pool exhaustion: longest single wait, and optional cap on wait cycles per call
    exhausted_wait_cap: float = 30.0
    max_exhaustion_waits: int | None = None

    # Minimum gap between two requests on the same credential
    min_request_spacing: float = 1.5

    # 88 is the X/Twitter "Rate limit exceeded" code
    rate_limit_codes: tuple[int, ...] = field(default=(88, 429))
