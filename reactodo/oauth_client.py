# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""OAuth authorization code exchange against Slack's ``oauth.v2.access``."""

import logging
from typing import Any, Dict, Optional

import httpx

from reactodo.oauth_validator import OAuthTokenValidator


logger = logging.getLogger(__name__)


SLACK_OAUTH_ACCESS_URL = "https://slack.com/api/oauth.v2.access"


class OAuthExchangeError(Exception):
    """Raised when the token exchange request itself fails."""

    def __init__(self, message: str, error_code: str = "exchange_failed", original_error: Optional[Exception] = None):
        self.message = message
        self.error_code = error_code
        self.original_error = original_error
        super().__init__(message)


class SlackOAuthClient:
    """
    Exchanges authorization codes for tokens.

    The raw response body is returned as-is, including ``ok: false``
    responses; deciding whether it is usable is the validator's job.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        timeout: float = 10.0
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code.

        Raises:
            OAuthExchangeError: On transport errors, non-2xx responses or a
                body that is not a JSON object
        """
        form = {
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'code': code,
        }
        if self.redirect_uri:
            form['redirect_uri'] = self.redirect_uri

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(SLACK_OAUTH_ACCESS_URL, data=form, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPError as e:
                logger.error("OAuth token exchange HTTP error", extra={'error': str(e)})
                raise OAuthExchangeError("OAuth token exchange failed", "http_error", e) from e
            except ValueError as e:
                raise OAuthExchangeError("OAuth response was not valid JSON", "invalid_response", e) from e

        if not isinstance(data, dict):
            raise OAuthExchangeError("OAuth response was not a JSON object", "invalid_response")

        logger.info(
            "OAuth token exchange completed",
            extra={'response': OAuthTokenValidator.mask(data)}
        )
        return data
