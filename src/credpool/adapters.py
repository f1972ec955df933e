"""Client factories binding one credential to an HTTP client.

Pass an instance as ``client_factory=`` to KeyPool / AsyncKeyPool; each record then owns a
client with the credential already injected, and the pool's close() closes them.
"""

from typing import Union

from .types import AuthConfig


def _auth_parts(credential: str, auth_config: AuthConfig) -> tuple[dict, dict]:
    """Return (headers, params) carrying the credential per auth_config."""
    if auth_config.in_ == "query":
        return {}, {auth_config.query_param: credential}
    return {auth_config.header: f"{auth_config.scheme} {credential}".strip()}, {}


# ---------- requests (sync) ----------
class RequestsSessionFactory:
    def __init__(self, auth_config: Union[AuthConfig, None] = None, headers=None):
        self.auth_config = auth_config or AuthConfig()
        self.headers = dict(headers or {})

    def __call__(self, credential: str):
        import requests  # noqa: PLC0415

        headers, params = _auth_parts(credential, self.auth_config)
        session = requests.Session()
        session.headers.update({**self.headers, **headers})
        session.params.update(params)
        return session


# ---------- httpx (sync or async) ----------
class HttpxClientFactory:
    def __init__(
        self,
        auth_config: Union[AuthConfig, None] = None,
        asynchronous: bool = False,
        **client_kwargs,
    ):
        self.auth_config = auth_config or AuthConfig()
        self.asynchronous = asynchronous
        self.client_kwargs = client_kwargs

    def __call__(self, credential: str):
        import httpx  # noqa: PLC0415

        headers, params = _auth_parts(credential, self.auth_config)
        kwargs = dict(self.client_kwargs)
        kwargs["headers"] = {**kwargs.get("headers", {}), **headers}
        kwargs["params"] = {**kwargs.get("params", {}), **params}
        cls = httpx.AsyncClient if self.asynchronous else httpx.Client
        return cls(**kwargs)


# ---------- aiohttp (async) ----------
class AiohttpSessionFactory:
    """Builds aiohttp.ClientSession objects; must be invoked inside a running event loop.

    aiohttp sessions have no default query params, so query-style auth is rejected.
    """

    def __init__(self, auth_config: Union[AuthConfig, None] = None, **session_kwargs):
        self.auth_config = auth_config or AuthConfig()
        if self.auth_config.in_ == "query":
            raise ValueError("AiohttpSessionFactory supports header auth only")
        self.session_kwargs = session_kwargs

    def __call__(self, credential: str):
        import aiohttp  # noqa: PLC0415

        headers, _ = _auth_parts(credential, self.auth_config)
        kwargs = dict(self.session_kwargs)
        kwargs["headers"] = {**kwargs.get("headers", {}), **headers}
        return aiohttp.ClientSession(**kwargs)
