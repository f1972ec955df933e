import asyncio
import contextlib
import dataclasses
import inspect
import logging
import threading
import time
from collections.abc import Iterable
from typing import Any, Callable, TypeVar, Union

from .classify import coerce_classifier
from .env import load_credentials_from_env, parse_credentials
from .errors import (
    ConfigurationError,
    PoolClosedError,
    PoolExhaustedError,
    PoolNotInitializedError,
)
from .state import CredentialRecord, PoolState
from .stats import CredentialStats, PoolStats, mask_credential
from .types import FailureKind, PoolConfig

T = TypeVar("T")

_CONFIG_FIELDS = frozenset(f.name for f in dataclasses.fields(PoolConfig))
_LOADER_KWARGS = frozenset({"split_commas"})


def _resolve_config(config: Union[PoolConfig, None], kwargs: dict) -> PoolConfig:
    """Apply PoolConfig field overrides found in kwargs (popped) on top of config."""
    overrides = {k: kwargs.pop(k) for k in list(kwargs) if k in _CONFIG_FIELDS}
    base = config or PoolConfig()
    return dataclasses.replace(base, **overrides) if overrides else base


# ---------- Base registry (shared logic; synchronization handled by subclasses) ----------


class _Registry:
    def __init__(
        self,
        config: PoolConfig,
        classifier: Union[object, None],
        client_factory: Union[Callable[[str], Any], None],
    ):
        """Initialize a _Registry.

        Args:
            config (PoolConfig): cooldown, spacing and exhaustion settings
            classifier (ErrorClassifier | callable | None): rate-limit classifier
            client_factory (callable | None): builds the client bound to one credential;
                when None the client is the credential string itself

        Raises:
            TypeError: if classifier is not a valid ErrorClassifier or callable
        """
        self.config = config
        self._classifier = coerce_classifier(classifier, config.rate_limit_codes)
        self._client_factory = client_factory
        self._state = PoolState()
        self._closed = False
        self._logger = logging.getLogger("credpool")

    def _now(self) -> float:
        return time.time()

    def __len__(self) -> int:
        return len(self._state)

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    # --- registry ---
    def _initialize(self, credentials: Union[str, Iterable[str]]) -> None:
        if self._state.initialized:
            self._logger.debug("pool already initialized; ignoring initialize()")
            return
        if isinstance(credentials, str):
            parsed = parse_credentials(credentials)
        else:
            parsed = [c.strip() for c in credentials if c and c.strip()]
        if not parsed:
            raise ConfigurationError(
                "credpool: no credentials found; set RETTIWT_API_KEYS as comma-separated values"
            )
        factory = self._client_factory
        self._state.records = [
            CredentialRecord(
                credential=cred,
                index=i,
                client=factory(cred) if factory is not None else cred,
            )
            for i, cred in enumerate(parsed)
        ]
        self._state.cursor = 0
        self._state.initialized = True
        self._logger.info(f"initialized with {len(parsed)} credentials")
        for rec in self._state.records:
            self._logger.info(f"  key #{rec.index + 1}: {mask_credential(rec.credential)}")

    def _require_initialized(self) -> int:
        if self._closed:
            raise PoolClosedError("credpool: pool is closed")
        if not self._state.initialized or not self._state.records:
            raise PoolNotInitializedError("credpool: pool not initialized; call initialize() first")
        return len(self._state.records)

    # --- selection (non-blocking) ---
    def _next_eligible(self, tried: set[int]) -> Union[CredentialRecord, None]:
        records = self._state.records
        n = len(records)
        if n == 0:
            return None
        now = self._now()
        start = self._state.cursor
        for step in range(n):
            idx = (start + step) % n
            rec = records[idx]
            if idx in tried or not rec.is_eligible(now):
                continue
            # advance before the attempt runs, whatever its outcome
            self._state.cursor = (idx + 1) % n
            return rec
        return None

    def _plan_attempt(self, tried: set[int]) -> tuple[Union[CredentialRecord, None], float]:
        """Pick the next record and how long to wait before using it.

        Returns (record, spacing delay) on a hit; (None, exhaustion delay) when nothing is
        eligible, where a delay of 0 means nothing is cooling either.
        """
        rec = self._next_eligible(tried)
        now = self._now()
        if rec is None:
            wait = self._state.next_cooldown_end(now)
            return None, (min(wait, self.config.exhausted_wait_cap) if wait > 0 else 0.0)
        tried.add(rec.index)
        delay = 0.0
        if rec.last_used_at is not None:
            elapsed = now - rec.last_used_at
            if elapsed < self.config.min_request_spacing:
                delay = self.config.min_request_spacing - elapsed
        # claim the slot before the lock drops; a concurrent pick of this record queues behind it
        rec.last_used_at = now + delay
        return rec, delay

    def _note_exhausted(self) -> int:
        self._state.consecutive_exhausted += 1
        return self._state.consecutive_exhausted

    # --- result accounting ---
    def _begin_attempt(self, rec: CredentialRecord) -> None:
        rec.last_used_at = self._now()
        rec.total_requests += 1

    def _mark_success(self, rec: CredentialRecord, name: str) -> None:
        rec.success_count += 1
        rec.consecutive_failures = 0
        rec.healthy = True
        self._state.consecutive_exhausted = 0
        self._logger.debug(
            f"{name} succeeded with key #{rec.index + 1} "
            f"({rec.success_count}/{rec.total_requests} success)"
        )

    def _mark_failure(self, rec: CredentialRecord, error: BaseException, name: str) -> FailureKind:
        now = self._now()
        try:
            kind = self._classifier.classify(error)
        except Exception as e:
            self._logger.exception(f"{name}: classifier raised {e!r}; treating failure as generic")
            kind = FailureKind.GENERIC
        rec.last_error_at = now
        rec.last_error = str(error) or type(error).__name__
        if kind is FailureKind.RATE_LIMIT:
            rec.rate_limit_hits += 1
            rec.cool_until(now + self.config.rate_limit_cooldown)
            self._logger.warning(
                f"{name}: key #{rec.index + 1} rate limited; cooling down for "
                f"{self.config.rate_limit_cooldown / 60:g} min "
                f"(total rate limits: {rec.rate_limit_hits}); trying next key"
            )
            return kind
        rec.consecutive_failures += 1
        rec.cool_until(now + self.config.error_cooldown)
        if rec.consecutive_failures >= self.config.max_consecutive_failures:
            rec.healthy = False
            self._logger.error(
                f"{name}: key #{rec.index + 1} marked unhealthy after "
                f"{rec.consecutive_failures} consecutive failures: {rec.last_error}"
            )
        else:
            self._logger.warning(
                f"{name}: key #{rec.index + 1} failed: {rec.last_error}; trying next key"
            )
        return kind

    # --- admin ---
    def _reset_one(self, index: int) -> bool:
        if not 0 <= index < len(self._state.records):
            return False
        self._state.records[index].reset()
        self._logger.info(f"key #{index + 1} manually reset")
        return True

    def _reset_all(self) -> None:
        for rec in self._state.records:
            rec.reset()
        self._state.consecutive_exhausted = 0
        self._logger.info(f"all {len(self._state.records)} keys reset")

    def _snapshot(self) -> PoolStats:
        now = self._now()
        records = self._state.records
        return PoolStats(
            total_keys=len(records),
            healthy_keys=sum(1 for r in records if r.is_eligible(now)),
            cooling_down_keys=sum(1 for r in records if r.is_cooling(now)),
            current_index=self._state.cursor,
            keys=[CredentialStats.from_record(r, now) for r in records],
        )

    def _exhausted(self, name: str, attempts: int, last_err: Union[BaseException, None]):
        self._logger.error(
            f'{name}: all {len(self._state.records)} keys exhausted after {attempts} attempts'
        )
        return PoolExhaustedError(name, len(self._state.records), attempts, last_err)


# ---------- Sync pool (threads) ----------


class KeyPool(_Registry):
    def __init__(
        self,
        credentials: Union[str, Iterable[str], None] = None,
        config: Union[PoolConfig, None] = None,
        classifier: Union[object, None] = None,
        client_factory: Union[Callable[[str], Any], None] = None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        """Initialize a KeyPool.

        Args:
            credentials (str | Iterable[str] | None): comma-separated credentials or a list;
                when given, initialize() is called immediately
            config (PoolConfig | None): timing and threshold settings
            classifier (ErrorClassifier | callable | None): decides rate-limit vs generic
            client_factory (callable | None): credential -> client handle
            log_level (int | None): level for the "credpool" logger
            kwargs: any PoolConfig field, overriding config
            - rate_limit_cooldown: float
            - error_cooldown: float
            - max_consecutive_failures: int
            - exhausted_wait_cap: float
            - max_exhaustion_waits: int | None
            - min_request_spacing: float
            - rate_limit_codes: tuple[int, ...]
        """
        resolved = _resolve_config(config, kwargs)
        if kwargs:
            raise TypeError(f"unexpected keyword arguments: {', '.join(sorted(kwargs))}")
        super().__init__(resolved, classifier, client_factory)
        self._lock = threading.Lock()
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)
        if credentials is not None:
            self.initialize(credentials)

    # ---------- convenience: build from env ----------
    @classmethod
    def from_env(
        cls,
        names=None,
        prefix: Union[str, None] = None,
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        """Create and initialize a pool from environment variables.

        Args:
            names (Iterable[str] | None): explicit variable names (default RETTIWT_API_KEYS)
            prefix (str | None): use every variable starting with this prefix
            env_path (str | None): optional .env file; the process environment wins

            kwargs keywords:
            split_commas: split comma-separated values
            anything else is passed to the pool constructor

        Raises:
            ConfigurationError: if no credentials were found
        """
        loader_keys = {k: kwargs.pop(k) for k in list(kwargs) if k in _LOADER_KWARGS}
        creds = load_credentials_from_env(
            names=names, prefix=prefix, env_path=env_path, **loader_keys
        )
        return cls(creds, **kwargs)

    # public API
    def initialize(self, credentials: Union[str, Iterable[str]]) -> None:
        with self._lock:
            self._initialize(credentials)

    def execute(self, operation: Callable[[Any], T], name: str = "request") -> T:
        """Run operation(client) through the next eligible credential, rotating on failure.

        Raises:
            PoolNotInitializedError: if initialize() was never called
            PoolExhaustedError: if no credential could complete the call
        """
        with self._lock:
            n = self._require_initialized()
        max_waits = self.config.max_exhaustion_waits
        tried: set[int] = set()
        attempts, waits, round_no = 0, 0, 0
        last_err: Union[BaseException, None] = None
        while len(tried) < n:
            with self._lock:
                rec, delay = self._plan_attempt(tried)
                can_wait = rec is None and delay > 0 and (max_waits is None or waits < max_waits)
                if can_wait:
                    round_no = self._note_exhausted()
            if rec is None:
                if not can_wait:
                    break
                waits += 1
                self._logger.warning(
                    f"{name}: all keys cooling down; waiting {delay:.0f}s (attempt {round_no})"
                )
                self._sleep(delay)
                tried.clear()
                continue
            if delay > 0:
                self._sleep(delay)
            with self._lock:
                self._begin_attempt(rec)
            attempts += 1
            try:
                result = operation(rec.client)
            except Exception as e:
                last_err = e
                with self._lock:
                    self._mark_failure(rec, e, name)
                continue
            with self._lock:
                self._mark_success(rec, name)
            return result
        with self._lock:
            raise self._exhausted(name, attempts, last_err) from last_err

    def get_stats(self) -> PoolStats:
        with self._lock:
            return self._snapshot()

    def reset_one(self, index: int) -> None:
        with self._lock:
            self._reset_one(index)

    def reset_all(self) -> None:
        with self._lock:
            self._reset_all()

    def close(self):
        with self._lock:
            self._closed = True
            clients = [r.client for r in self._state.records if r.client is not r.credential]
        for client in clients:
            close = getattr(client, "close", None)
            if callable(close):
                with contextlib.suppress(Exception):
                    close()

    # internal
    def _sleep(self, delay: float) -> None:
        time.sleep(delay)


# ---------- Async pool (asyncio) ----------


class AsyncKeyPool(_Registry):
    def __init__(
        self,
        credentials: Union[str, Iterable[str], None] = None,
        config: Union[PoolConfig, None] = None,
        classifier: Union[object, None] = None,
        client_factory: Union[Callable[[str], Any], None] = None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        """Initialize an AsyncKeyPool.

        Same arguments as KeyPool. Operations passed to execute() may be plain callables
        or return awaitables. Client factories that need a running event loop (aiohttp)
        require initialize() to be called from inside the loop.
        """
        resolved = _resolve_config(config, kwargs)
        if kwargs:
            raise TypeError(f"unexpected keyword arguments: {', '.join(sorted(kwargs))}")
        super().__init__(resolved, classifier, client_factory)
        self._lock = asyncio.Lock()
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)
        if credentials is not None:
            self.initialize(credentials)

    @classmethod
    def from_env(
        cls,
        names=None,
        prefix: Union[str, None] = None,
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        loader_keys = {k: kwargs.pop(k) for k in list(kwargs) if k in _LOADER_KWARGS}
        creds = load_credentials_from_env(
            names=names,
            prefix=prefix,
            env_path=env_path,
            **loader_keys,
        )
        return cls(creds, **kwargs)

    # No await points in these, so they run atomically on the event loop
    def initialize(self, credentials: Union[str, Iterable[str]]) -> None:
        self._initialize(credentials)

    def get_stats(self) -> PoolStats:
        return self._snapshot()

    def reset_one(self, index: int) -> None:
        self._reset_one(index)

    def reset_all(self) -> None:
        self._reset_all()

    async def execute(self, operation: Callable[[Any], Any], name: str = "request") -> Any:
        n = self._require_initialized()
        max_waits = self.config.max_exhaustion_waits
        tried: set[int] = set()
        attempts, waits, round_no = 0, 0, 0
        last_err: Union[BaseException, None] = None
        while len(tried) < n:
            async with self._lock:
                rec, delay = self._plan_attempt(tried)
                can_wait = rec is None and delay > 0 and (max_waits is None or waits < max_waits)
                if can_wait:
                    round_no = self._note_exhausted()
            if rec is None:
                if not can_wait:
                    break
                waits += 1
                self._logger.warning(
                    f"{name}: all keys cooling down; waiting {delay:.0f}s (attempt {round_no})"
                )
                await self._sleep(delay)
                tried.clear()
                continue
            if delay > 0:
                await self._sleep(delay)
            async with self._lock:
                self._begin_attempt(rec)
            attempts += 1
            try:
                result = operation(rec.client)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                last_err = e
                async with self._lock:
                    self._mark_failure(rec, e, name)
                continue
            async with self._lock:
                self._mark_success(rec, name)
            return result
        raise self._exhausted(name, attempts, last_err) from last_err

    async def close(self):
        self._closed = True
        clients = [r.client for r in self._state.records if r.client is not r.credential]
        for client in clients:
            closer = getattr(client, "aclose", None) or getattr(client, "close", None)
            if not callable(closer):
                continue
            with contextlib.suppress(Exception):
                res = closer()
                if inspect.isawaitable(res):
                    await res

    async def _sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)
