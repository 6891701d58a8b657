"""Token exchange strategies for the ondus:// login redirect.

The token endpoint has accepted the authorization response in several
shapes over time (GET of the full callback URL, requestBody as JSON or
form, bare code/state). Strategies are tried in order until one returns
a usable token pair.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from .const import (
    DEFAULT_TOKEN_EXCHANGE_STRATEGIES,
    STRATEGY_GET_CALLBACK_URL,
    STRATEGY_POST_FORM_CODE_STATE,
    STRATEGY_POST_FORM_REQUEST_BODY,
    STRATEGY_POST_JSON_CODE_STATE,
    STRATEGY_POST_JSON_REQUEST_BODY,
    TOKEN_EXCHANGE_URL,
)
from .exceptions import (
    AuthErrorKind,
    GroheApiConnectionError,
    GroheApiHttpError,
    GroheAuthError,
)
from .models import TokenPair
from .util import clip, safe_host_path

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .login import OndusRedirect
    from .session import GroheHttpSession, HttpResponse

_LOGGER = logging.getLogger(__name__)

_JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}
_FORM_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/x-www-form-urlencoded",
}

StrategyFn = Callable[["GroheHttpSession", "OndusRedirect"], Awaitable["HttpResponse"]]


@dataclass(frozen=True)
class ExchangeFailure:
    """Outcome of one failed strategy."""

    strategy: str
    status: int | None
    detail: str


class GroheTokenExchangeError(GroheAuthError):
    """Every configured token exchange strategy failed."""

    def __init__(self, failures: list[ExchangeFailure]) -> None:
        """Initialize with the failures in the order they were tried."""
        self.failures = failures
        if failures:
            last = failures[-1]
            detail = f"{last.strategy} status={last.status or 'n/a'}: {last.detail}"
        else:
            detail = "no token exchange strategy configured"
        super().__init__(AuthErrorKind.TOKEN_EXCHANGE_FAILED, detail)


def _code_state(redirect: OndusRedirect) -> dict[str, str]:
    return {
        "code": redirect.params.get("code", ""),
        "state": redirect.params.get("state", ""),
    }


async def _get_callback_url(
    session: GroheHttpSession, redirect: OndusRedirect
) -> HttpResponse:
    """GET the callback URL exactly as redirected, all query params kept."""
    return await session.get(
        redirect.https_url, headers={"Accept": "application/json"}
    )


async def _post_json_request_body(
    session: GroheHttpSession, redirect: OndusRedirect
) -> HttpResponse:
    """POST the full callback URL as a JSON requestBody string."""
    return await session.post(
        TOKEN_EXCHANGE_URL,
        json_data={"requestBody": redirect.https_url},
        headers=_JSON_HEADERS,
    )


async def _post_form_request_body(
    session: GroheHttpSession, redirect: OndusRedirect
) -> HttpResponse:
    """POST the full callback URL as a form requestBody field."""
    return await session.post(
        TOKEN_EXCHANGE_URL,
        data={"requestBody": redirect.https_url},
        headers=_FORM_HEADERS,
    )


async def _post_json_code_state(
    session: GroheHttpSession, redirect: OndusRedirect
) -> HttpResponse:
    return await session.post(
        TOKEN_EXCHANGE_URL, json_data=_code_state(redirect), headers=_JSON_HEADERS
    )


async def _post_form_code_state(
    session: GroheHttpSession, redirect: OndusRedirect
) -> HttpResponse:
    return await session.post(
        TOKEN_EXCHANGE_URL, data=_code_state(redirect), headers=_FORM_HEADERS
    )


TOKEN_EXCHANGE_STRATEGIES: dict[str, StrategyFn] = {
    STRATEGY_GET_CALLBACK_URL: _get_callback_url,
    STRATEGY_POST_JSON_REQUEST_BODY: _post_json_request_body,
    STRATEGY_POST_FORM_REQUEST_BODY: _post_form_request_body,
    STRATEGY_POST_JSON_CODE_STATE: _post_json_code_state,
    STRATEGY_POST_FORM_CODE_STATE: _post_form_code_state,
}


def _token_pair_from(response: HttpResponse) -> TokenPair | None:
    """Return the token pair if the response carries both tokens."""
    if response.status != 200:
        return None
    body = response.json()
    if not isinstance(body, dict):
        return None
    if not body.get("access_token") or not body.get("refresh_token"):
        return None
    return TokenPair.from_response(body)


async def async_exchange_tokens(
    session: GroheHttpSession,
    redirect: OndusRedirect,
    strategies: Sequence[str] = DEFAULT_TOKEN_EXCHANGE_STRATEGIES,
) -> TokenPair:
    """Try each strategy in order and return the first valid token pair.

    Raises:
        GroheTokenExchangeError: If every strategy failed

    """
    failures: list[ExchangeFailure] = []

    for name in strategies:
        strategy = TOKEN_EXCHANGE_STRATEGIES[name]
        _LOGGER.debug(
            "Token exchange try=%s %s", name, safe_host_path(TOKEN_EXCHANGE_URL)
        )

        try:
            response = await strategy(session, redirect)
        except GroheApiHttpError as err:
            failure = ExchangeFailure(name, err.status, clip(err.body))
        except GroheApiConnectionError as err:
            failure = ExchangeFailure(name, None, str(err))
        else:
            tokens = _token_pair_from(response)
            if tokens is not None:
                _LOGGER.debug("Token exchange succeeded with strategy %s", name)
                return tokens
            if response.status != 200:
                detail = f"status {response.status}"
            else:
                detail = "missing access_token/refresh_token"
            failure = ExchangeFailure(
                name, response.status, f"{detail}: {clip(response.text)}"
            )

        _LOGGER.debug(
            "Token exchange failed try=%s status=%s body=%s",
            failure.strategy,
            failure.status or "n/a",
            failure.detail,
        )
        failures.append(failure)

    raise GroheTokenExchangeError(failures)
