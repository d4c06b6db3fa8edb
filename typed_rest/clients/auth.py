import inspect
import threading
import time
from typing import Any, AsyncGenerator, Generator, NamedTuple, Protocol, Union

import httpx
from loguru import logger

from typed_rest.log.sensitive import sensitive_log_filter

# tokens expiring within this window are refreshed before use
TOKEN_REFRESH_WINDOW_SECONDS = 300


class AccessToken(NamedTuple):
    token: str
    expires_on: float


class TokenCredential(Protocol):
    def get_token(self, *scopes: str) -> AccessToken:
        ...


class AsyncTokenCredential(Protocol):
    async def get_token(self, *scopes: str) -> AccessToken:
        ...


Credential = Union[TokenCredential, AsyncTokenCredential]


class StaticTokenCredential:
    """A credential that always hands out the same token. Useful for tests and tools."""

    def __init__(self, token: str, expires_on: float | None = None) -> None:
        self._token = AccessToken(token, expires_on or time.time() + 3600)

    def get_token(self, *scopes: str) -> AccessToken:
        return self._token


class BearerTokenAuth(httpx.Auth):
    """
    Attaches `Authorization: Bearer <token>` to every request. Tokens are cached
    until they get close to expiry; a 401 answered to a cached token triggers one
    refresh and resend.
    """

    def __init__(self, credential: Credential, *scopes: str) -> None:
        if not scopes:
            raise ValueError("At least one credential scope is required")
        self._credential = credential
        self._scopes = scopes
        self._token: AccessToken | None = None
        self._lock = threading.Lock()

    def _needs_refresh(self) -> bool:
        return (
            self._token is None
            or self._token.expires_on - time.time() < TOKEN_REFRESH_WINDOW_SECONDS
        )

    def _store(self, token: AccessToken) -> AccessToken:
        sensitive_log_filter.hide_sensitive_strings(token.token)
        if self._token is not None:
            sensitive_log_filter.forget_sensitive_strings(self._token.token)
        self._token = token
        return token

    def _get_token(self, force: bool = False) -> AccessToken:
        with self._lock:
            if force or self._needs_refresh():
                logger.debug(f"Acquiring access token for scopes {self._scopes}")
                token = self._credential.get_token(*self._scopes)
                if inspect.isawaitable(token):
                    if inspect.iscoroutine(token):
                        token.close()
                    raise TypeError(
                        "An async credential can only be used with asynchronous clients"
                    )
                return self._store(token)
            return self._token  # type: ignore[return-value]

    async def _get_token_async(self, force: bool = False) -> AccessToken:
        if force or self._needs_refresh():
            logger.debug(f"Acquiring access token for scopes {self._scopes}")
            token: Any = self._credential.get_token(*self._scopes)
            if inspect.isawaitable(token):
                token = await token
            return self._store(token)
        return self._token  # type: ignore[return-value]

    @staticmethod
    def _authorize(request: httpx.Request, token: AccessToken) -> None:
        request.headers["Authorization"] = f"Bearer {token.token}"

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        was_cached = not self._needs_refresh()
        self._authorize(request, self._get_token())
        response = yield request
        if response.status_code == 401 and was_cached:
            logger.info("Got unauthorized response, refreshing token before resending")
            self._authorize(request, self._get_token(force=True))
            yield request

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        was_cached = not self._needs_refresh()
        self._authorize(request, await self._get_token_async())
        response = yield request
        if response.status_code == 401 and was_cached:
            logger.info("Got unauthorized response, refreshing token before resending")
            self._authorize(request, await self._get_token_async(force=True))
            yield request
