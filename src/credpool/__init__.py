from .adapters import AiohttpSessionFactory, HttpxClientFactory, RequestsSessionFactory
from .classify import (
    DefaultClassifier,
    ErrorClassifier,
    PredicateClassifier,
    coerce_classifier,
    is_rate_limit_error,
)
from .env import load_credentials_from_env, parse_credentials
from .errors import (
    ConfigurationError,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
    PoolNotInitializedError,
)
from .pool import AsyncKeyPool, KeyPool
from .state import CredentialRecord, PoolState
from .stats import CredentialStats, PoolStats, mask_credential
from .types import AuthConfig, FailureKind, PoolConfig

__all__ = [
    "PoolConfig",
    "AuthConfig",
    "FailureKind",
    "KeyPool",
    "AsyncKeyPool",
    "CredentialRecord",
    "PoolState",
    "PoolStats",
    "CredentialStats",
    "mask_credential",
    "ErrorClassifier",
    "DefaultClassifier",
    "PredicateClassifier",
    "coerce_classifier",
    "is_rate_limit_error",
    "PoolError",
    "ConfigurationError",
    "PoolNotInitializedError",
    "PoolClosedError",
    "PoolExhaustedError",
    "RequestsSessionFactory",
    "HttpxClientFactory",
    "AiohttpSessionFactory",
    "load_credentials_from_env",
    "parse_credentials",
]
