class PoolError(Exception):
    """Base class for errors raised by credpool."""


class ConfigurationError(PoolError, ValueError):
    """No usable credentials were supplied to the pool."""


class PoolNotInitializedError(PoolError, RuntimeError):
    """execute() was called before initialize()."""


class PoolExhaustedError(PoolError):
    """Every credential was tried and failed, or none is eligible and none is cooling.

    Attributes:
        operation: name passed to execute()
        pool_size: number of credentials in the pool
        attempts: operation invocations made during the call
        last_error: the final per-attempt error, if any attempt was made
    """

    def __init__(
        self,
        operation: str,
        pool_size: int,
        attempts: int,
        last_error: BaseException | None = None,
    ):
        self.operation = operation
        self.pool_size = pool_size
        self.attempts = attempts
        self.last_error = last_error
        msg = (
            f'credpool: all {pool_size} credentials exhausted for "{operation}" '
            f"after {attempts} attempts"
        )
        if last_error is not None:
            msg += f"; last error: {last_error}"
        super().__init__(msg)


class PoolClosedError(PoolError, RuntimeError):
    """execute() was called after close()."""
