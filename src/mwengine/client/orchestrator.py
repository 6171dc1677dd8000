"""Request orchestration for the MediaWiki Action API.

:class:`ApiClient` turns a parameter mapping into a well-formed request,
sends it through :class:`~mwengine.client.transport.Transport`, classifies
the decoded body, and transparently recovers from the two expected
transient failures:

- ``badtoken``: the CSRF token is stale.  A fresh token is fetched, written
  into the request's ``token`` field and the same logical request is sent
  again.  Bounded by ``badtoken_max_retries`` (``None`` = unbounded).
- ``maxlag``: replication lag is above the requested ``maxlag``.  The client
  sleeps ``maxlag_pause`` seconds and resends, at most
  ``maxlag_max_retries`` times; after that the error reaches the caller.

Attempts of one logical request are strictly sequential.  Any other API
error is raised as :class:`~mwengine.core.exceptions.ApiError` carrying the
code, info, full response and the outgoing request.

The client also implements the session flow the badtoken path depends on:
login, token fetching, logout and site-info loading.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from mwengine.client.request_options import (
    RequestOptions,
    default_request_options,
    preprocess_parameters,
)
from mwengine.client.transport import Transport
from mwengine.config.settings import EngineSettings, get_settings
from mwengine.core.exceptions import (
    ApiError,
    InvalidResponseError,
    LoginError,
    TokenError,
)
from mwengine.core.logging_config import session_id_var
from mwengine.core.session import CallStatistics, SessionState

logger = logging.getLogger(__name__)

BADTOKEN: str = "badtoken"
MAXLAG: str = "maxlag"

_SITEINFO_PROPS: list[str] = ["general", "namespaces", "namespacealiases"]


class ApiClient:
    """Client for one wiki, owning its session state and call statistics.

    Create one instance per API endpoint and account; instances never share
    tokens, cookies or namespace data.

    Args:
        settings: Base settings.  Defaults to :func:`get_settings`.
        request_options: Instance-level request option overrides, e.g.
            ``{"headers": {"X-Tool": "x"}, "form": {"assert": "bot"}}``.
        http_client: Optional injected :class:`httpx.AsyncClient`.
        **overrides: Field-by-field overrides of *settings*
            (``api_url=...``, ``maxlag_pause=0.5`` ...).

    Usage::

        async with ApiClient(api_url="https://test.wikipedia.org/w/api.php") as client:
            await client.login(username="Bot@tool", password="...")
            data = await client.request({"action": "query", "meta": "userinfo"})
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        *,
        request_options: Mapping[str, Any] | None = None,
        http_client: httpx.AsyncClient | None = None,
        **overrides: Any,
    ) -> None:
        base = settings if settings is not None else get_settings()
        self.settings: EngineSettings = base.with_overrides(**overrides)
        self.session = SessionState()
        self.counter = CallStatistics()
        self.transport = Transport(counter=self.counter, http_client=http_client)
        self.request_options: RequestOptions = default_request_options(
            self.settings
        ).with_overrides(request_options)

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the underlying HTTP connection pool."""
        await self.transport.aclose()

    # ------------------------------------------------------------------
    # Session accessors
    # ------------------------------------------------------------------

    @property
    def csrf_token(self) -> str:
        return self.session.csrf_token

    @property
    def logged_in(self) -> bool:
        return self.session.logged_in

    @property
    def state(self) -> dict[str, Any]:
        return self.session.state

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_options(self, **changes: Any) -> None:
        """Replace engine settings field by field.

        Settings that feed the default request options (``api_url``,
        ``user_agent``, ``maxlag``, ``request_timeout``) are propagated to
        the instance request options as well.
        """
        self.settings = self.settings.with_overrides(**changes)
        if "api_url" in changes:
            self.request_options.url = self.settings.api_url
        if "user_agent" in changes:
            self.request_options.headers["User-Agent"] = self.settings.user_agent
        if "maxlag" in changes:
            self.request_options.form["maxlag"] = self.settings.maxlag
        if "request_timeout" in changes:
            self.request_options.timeout = self.settings.request_timeout

    def set_api_url(self, api_url: str) -> None:
        """Point the client at *api_url* without logging in."""
        self.set_options(api_url=api_url)

    def set_request_options(self, overrides: Mapping[str, Any]) -> RequestOptions:
        """Merge *overrides* into the instance request options."""
        self.request_options = self.request_options.with_overrides(overrides)
        return self.request_options

    def set_default_params(self, params: Mapping[str, Any]) -> None:
        """Add API parameters sent with every request (e.g. ``assert=bot``)."""
        self.request_options.form.update(params)

    def set_user_agent(self, user_agent: str) -> None:
        """Set the ``User-Agent`` header.  Required on Wikimedia wikis."""
        self.set_options(user_agent=user_agent)

    # ------------------------------------------------------------------
    # Core requests
    # ------------------------------------------------------------------

    async def raw_request(self, options: RequestOptions) -> Any:
        """Send *options* as-is, without classification or recovery."""
        return await self.transport.send(options)

    async def request(
        self,
        params: Mapping[str, Any] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send an API request and return the decoded response object.

        Args:
            params: API parameters.  Sequences are joined, ``False`` and
                ``None`` values are dropped (see
                :func:`~mwengine.client.request_options.preprocess_parameters`).
            overrides: Per-call request option overrides; these take
                precedence over the instance options.

        Returns:
            The decoded response object, unchanged.

        Raises:
            TransportError: No response could be obtained.
            InvalidResponseError: The body was not a JSON object.
            ApiError: The API reported an error that is not recoverable,
                or a recoverable one past its retry bound.
        """
        options = self.request_options.with_overrides(overrides)
        options.form.update(params or {})
        options.form = preprocess_parameters(options.form)

        sid = session_id_var.set(self.session.session_id)
        try:
            return await self._send_with_recovery(options)
        finally:
            session_id_var.reset(sid)

    async def _send_with_recovery(self, options: RequestOptions) -> dict[str, Any]:
        lag_retries = 0
        token_refreshes = 0

        while True:
            response = await self.transport.send(options)

            if not isinstance(response, dict):
                raise InvalidResponseError(response)

            # https://www.mediawiki.org/wiki/API:Errors_and_warnings#Errors
            if "error" not in response:
                return response

            code, info = _error_code_and_info(response["error"])

            if code == BADTOKEN and self._may_refresh_token(token_refreshes):
                token_refreshes += 1
                logger.info("badtoken: fetching a new CSRF token and resending")
                options.form["token"] = await self.get_csrf_token()
                continue

            # https://www.mediawiki.org/wiki/Manual:Maxlag_parameter
            if code == MAXLAG and lag_retries < self.settings.maxlag_max_retries:
                logger.warning(
                    "maxlag: waiting %.1fs before retry %d/%d",
                    self.settings.maxlag_pause,
                    lag_retries + 1,
                    self.settings.maxlag_max_retries,
                )
                await asyncio.sleep(self.settings.maxlag_pause)
                lag_retries += 1
                continue

            raise ApiError(code, info, response=response, request=options)

    def _may_refresh_token(self, refreshes_so_far: int) -> bool:
        limit = self.settings.badtoken_max_retries
        return limit is None or refreshes_so_far < limit

    # ------------------------------------------------------------------
    # Session flow
    # ------------------------------------------------------------------

    async def login(
        self,
        username: str | None = None,
        password: str | None = None,
        api_url: str | None = None,
    ) -> dict[str, Any]:
        """Log in with a bot password.

        Fetches a login token together with site info (which populates the
        namespace table), then posts ``action=login``.

        Returns:
            The merged login state.

        Raises:
            LoginError: Credentials or API URL missing, no login token
                returned, or login rejected.
        """
        changes = {
            key: value
            for key, value in (
                ("username", username),
                ("password", password),
                ("api_url", api_url),
            )
            if value is not None
        }
        if changes:
            self.set_options(**changes)

        settings = self.settings
        if not settings.username or not settings.password or not settings.api_url:
            raise LoginError("Incomplete login credentials!")

        login_string = f"{settings.username}@{settings.api_url.split('/api.php')[0]}"

        # assert is unset: it cannot pass until login has completed.
        response = await self.request({
            "action": "query",
            "meta": ["tokens", "siteinfo"],
            "type": "login",
            "siprop": _SITEINFO_PROPS,
            "assert": None,
        })
        tokens = (response.get("query") or {}).get("tokens") or {}
        if not tokens.get("logintoken"):
            logger.error("login: invalid response while fetching token for %s", login_string)
            raise LoginError("Failed to get login token", response=response)
        self.session.merge(tokens)
        self.session.namespaces.process_namespace_data(response)

        response = await self.request({
            "action": "login",
            "lgname": settings.username,
            "lgpassword": settings.password,
            "lgtoken": tokens["logintoken"],
            "assert": None,
        })
        login = response.get("login") or {}
        if login.get("result") == "Success":
            self.session.merge(login)
            self.session.logged_in = True
            if not settings.silent:
                logger.info("login: successful for %s", login_string)
            return self.session.state

        reason = login.get("result") or "Unknown reason"
        logger.error("login: failed for %s (%s)", login_string, reason)
        raise LoginError(f"Could not login: {reason}", response=response)

    async def get_csrf_token(self) -> str:
        """Fetch an edit token and install it in the session.

        Raises:
            TokenError: If the response carries no ``csrftoken``.
        """
        response = await self.request({
            "action": "query",
            "meta": "tokens",
            "type": "csrf",
        })
        tokens = (response.get("query") or {}).get("tokens") or {}
        if not tokens.get("csrftoken"):
            raise TokenError("Could not get edit token", response=response)
        self.session.csrf_token = tokens["csrftoken"]
        self.session.merge(tokens)
        return self.session.csrf_token

    async def login_get_token(
        self,
        username: str | None = None,
        password: str | None = None,
        api_url: str | None = None,
    ) -> str:
        """Log in, then fetch an edit token."""
        await self.login(username=username, password=password, api_url=api_url)
        return await self.get_csrf_token()

    async def logout(self) -> dict[str, Any]:
        """Log out; the API answers with an empty object on success."""
        response = await self.request({"action": "logout", "token": self.session.csrf_token})
        self.session.logged_in = False
        return response

    async def get_site_info(self) -> dict[str, Any]:
        """Load namespace data without logging in."""
        response = await self.request({
            "action": "query",
            "meta": "siteinfo",
            "siprop": _SITEINFO_PROPS,
        })
        self.session.namespaces.process_namespace_data(response)
        return response

    async def get_server_time(self) -> str:
        """Return the wiki's current server timestamp."""
        response = await self.request({"action": "query", "curtimestamp": True})
        return response["curtimestamp"]


def _error_code_and_info(error: Any) -> tuple[str, str]:
    """Extract ``(code, info)`` from an ``error`` descriptor."""
    if isinstance(error, dict):
        return str(error.get("code", "unknown")), str(error.get("info", ""))
    return "unknown", str(error)
