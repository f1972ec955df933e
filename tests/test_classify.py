import httpx
import pytest
import requests

from credpool import (
    DefaultClassifier,
    FailureKind,
    PredicateClassifier,
    coerce_classifier,
    is_rate_limit_error,
)


class CodedError(Exception):
    def __init__(self, message, **attrs):
        super().__init__(message)
        for k, v in attrs.items():
            setattr(self, k, v)


@pytest.mark.parametrize(
    "message",
    ["Rate limit exceeded", "RATE LIMIT", "429 Too Many Requests", "too many requests, slow down"],
)
def test_message_phrases(message):
    assert is_rate_limit_error(Exception(message))


def test_numeric_codes():
    assert is_rate_limit_error(CodedError("x", code=88))
    assert is_rate_limit_error(CodedError("x", code=429))
    assert is_rate_limit_error(CodedError("x", status=429))
    assert is_rate_limit_error(CodedError("x", code="429"))
    assert not is_rate_limit_error(CodedError("x", code=500))
    assert not is_rate_limit_error(CodedError("x", code=True))


def test_generic_failures():
    assert not is_rate_limit_error(ValueError("boom"))
    assert not is_rate_limit_error(CodedError("ECONNRESET", code="ECONNRESET"))


def test_custom_codes():
    assert is_rate_limit_error(CodedError("x", code=503), codes=(503,))
    assert not is_rate_limit_error(CodedError("x", code=429), codes=(503,))


def test_requests_http_error():
    resp = requests.Response()
    resp.status_code = 429
    err = requests.HTTPError("client error", response=resp)
    assert is_rate_limit_error(err)

    resp.status_code = 404
    assert not is_rate_limit_error(requests.HTTPError("not found", response=resp))


def test_httpx_status_error():
    req = httpx.Request("GET", "https://api.example.com/lists/1")
    resp = httpx.Response(429, request=req)
    err = httpx.HTTPStatusError("client error", request=req, response=resp)
    assert is_rate_limit_error(err)


def test_default_classifier():
    clf = DefaultClassifier()
    assert clf.classify(CodedError("x", code=88)) is FailureKind.RATE_LIMIT
    assert clf.classify(RuntimeError("nope")) is FailureKind.GENERIC


def test_coerce_classifier():
    assert isinstance(coerce_classifier(None), DefaultClassifier)
    clf = DefaultClassifier()
    assert coerce_classifier(clf) is clf
    pred = coerce_classifier(lambda e: isinstance(e, TimeoutError))
    assert isinstance(pred, PredicateClassifier)
    assert pred.classify(TimeoutError()) is FailureKind.RATE_LIMIT
    assert pred.classify(ValueError()) is FailureKind.GENERIC
    with pytest.raises(TypeError):
        coerce_classifier("weighted")


def test_pool_uses_custom_classifier(make_pool, clock):
    pool = make_pool("aaa,bbb", classifier=lambda e: isinstance(e, TimeoutError))

    def op(client):
        if client == "aaa":
            raise TimeoutError("read timed out")
        return client

    assert pool.execute(op) == "bbb"
    rec = pool._state.records[0]
    assert rec.rate_limit_hits == 1
    assert rec.cooldown_until == clock.t + 900


def test_pool_config_codes_reach_classifier(make_pool):
    pool = make_pool("aaa,bbb", rate_limit_codes=(503,))

    def op(client):
        if client == "aaa":
            raise CodedError("unavailable", status_code=503)
        return client

    pool.execute(op)
    assert pool._state.records[0].rate_limit_hits == 1


def test_classifier_error_counts_as_generic_failure(make_pool, clock):
    def broken_classifier(error):
        raise KeyError("missing field")

    pool = make_pool("aaa,bbb", classifier=broken_classifier)

    def op(client):
        if client == "aaa":
            raise RuntimeError("too many requests")
        return client

    assert pool.execute(op) == "bbb"
    rec = pool._state.records[0]
    assert rec.rate_limit_hits == 0
    assert rec.consecutive_failures == 1
    assert rec.cooldown_until == clock.t + 120
    assert rec.last_error == "too many requests"
