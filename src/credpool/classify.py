from collections.abc import Iterable
from typing import Callable, Union

from .types import FailureKind

DEFAULT_RATE_LIMIT_CODES = (88, 429)
RATE_LIMIT_PHRASES = ("rate limit", "too many requests")


def _error_message(error: BaseException) -> str:
    msg = getattr(error, "message", None)
    if isinstance(msg, str) and msg:
        return msg
    return str(error)


def _error_codes(error: BaseException) -> set[int]:
    """Best-effort numeric codes carried by an error.

    Looks at ``status_code``, ``status`` and ``code`` on the error, then on an attached
    ``response`` (requests.HTTPError, httpx.HTTPStatusError). aiohttp.ClientResponseError
    carries ``status`` directly.
    """
    holders = [error]
    response = getattr(error, "response", None)
    if response is not None:
        holders.append(response)
    found: set[int] = set()
    for holder in holders:
        for attr in ("status_code", "status", "code"):
            value = getattr(holder, attr, None)
            if isinstance(value, bool):
                continue
            if isinstance(value, int):
                found.add(value)
            elif isinstance(value, str) and value.isdigit():
                found.add(int(value))
    return found


def is_rate_limit_error(
    error: BaseException, codes: Iterable[int] = DEFAULT_RATE_LIMIT_CODES
) -> bool:
    message = _error_message(error).lower()
    if any(phrase in message for phrase in RATE_LIMIT_PHRASES):
        return True
    return not _error_codes(error).isdisjoint(codes)


class ErrorClassifier:
    """Decides whether a failed attempt hit a rate limit or failed for another reason."""

    def classify(self, error: BaseException) -> FailureKind:
        raise NotImplementedError


class DefaultClassifier(ErrorClassifier):
    def __init__(self, codes: Iterable[int] = DEFAULT_RATE_LIMIT_CODES):
        self.codes = tuple(codes)

    def classify(self, error: BaseException) -> FailureKind:
        if is_rate_limit_error(error, self.codes):
            return FailureKind.RATE_LIMIT
        return FailureKind.GENERIC


class PredicateClassifier(ErrorClassifier):
    """Wrap a user-supplied ``fn(error) -> bool`` (True means rate limited)."""

    def __init__(self, predicate: Callable[[BaseException], bool]):
        self.predicate = predicate

    def classify(self, error: BaseException) -> FailureKind:
        return FailureKind.RATE_LIMIT if self.predicate(error) else FailureKind.GENERIC


def coerce_classifier(
    classifier: Union[object, None], codes: Iterable[int] = DEFAULT_RATE_LIMIT_CODES
) -> ErrorClassifier:
    """Turn None | ErrorClassifier | callable into an ErrorClassifier.

    Accepted inputs:
      - None                    -> DefaultClassifier(codes)
      - ErrorClassifier instance (returned as-is)
      - callable fn(error) -> bool, wrapped into PredicateClassifier
    """
    if classifier is None:
        return DefaultClassifier(codes)
    if isinstance(classifier, ErrorClassifier):
        return classifier
    if callable(classifier):
        return PredicateClassifier(classifier)
    raise TypeError("classifier must be None, an ErrorClassifier, or a callable")
