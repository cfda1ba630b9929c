# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Validation of Slack ``oauth.v2.access`` responses.

Turns the raw token exchange payload into a typed connection record,
collecting every violated rule instead of stopping at the first one.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from reactodo.models import BASIC_SCOPES, is_valid_slack_user_id, split_scopes


MASK = "[MASKED]"


class TokenType(str, Enum):
    """Which tokens the exchange returned."""
    BOTH = "both"
    USER = "user"
    BOT = "bot"


class ValidatedConnection(BaseModel):
    """Connection fields extracted from a successful OAuth exchange."""
    model_config = ConfigDict(frozen=True)

    workspace_id: str
    workspace_name: str
    team_name: str
    access_token: str
    scope: str
    token_type: TokenType
    slack_user_id: Optional[str] = None
    bot_user_id: Optional[str] = None
    is_enterprise_install: bool = False

    def has_basic_scopes(self) -> bool:
        granted = set(split_scopes(self.scope))
        return all(scope in granted for scope in BASIC_SCOPES)


@dataclass
class OAuthValidation:
    """Result of validating an OAuth payload."""
    connection: Optional[ValidatedConnection] = None
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.connection is not None and not self.errors


def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


class OAuthTokenValidator:
    """
    Validates OAuth token exchange payloads.

    The user-scoped token and scope win over the bot-scoped ones whenever
    the exchange returned both.
    """

    def validate(self, payload: Any) -> OAuthValidation:
        """
        Validate a raw payload.

        Args:
            payload: Decoded JSON body of ``oauth.v2.access``

        Returns:
            OAuthValidation listing every violated rule. The extracted
            connection is attached whenever the team, token and scope are
            present, but only a result without errors is usable.
        """
        if not isinstance(payload, dict):
            payload = {}

        errors = self.collect_errors(payload)
        team = _section(payload, "team")
        authed_user = _section(payload, "authed_user")
        access_token = authed_user.get("access_token") or payload.get("access_token")
        scope = authed_user.get("scope") or payload.get("scope")

        if not (team.get("id") and team.get("name") and access_token and scope):
            return OAuthValidation(errors=errors)

        connection = ValidatedConnection(
            workspace_id=team["id"],
            workspace_name=team["name"],
            team_name=team["name"],
            access_token=access_token,
            scope=scope,
            token_type=self.token_type(payload),
            slack_user_id=authed_user.get("id") or None,
            bot_user_id=payload.get("bot_user_id") or None,
            is_enterprise_install=bool(payload.get("is_enterprise_install")),
        )
        return OAuthValidation(connection=connection, errors=errors)

    def collect_errors(self, payload: Dict[str, Any]) -> List[str]:
        errors: List[str] = []
        team = _section(payload, "team")
        authed_user = _section(payload, "authed_user")

        if payload.get("ok") is not True:
            errors.append("OAuth response indicates failure")
        if payload.get("error"):
            errors.append(f"OAuth error: {payload['error']}")
        if not team.get("id"):
            errors.append("Missing team ID")
        if not team.get("name"):
            errors.append("Missing team name")
        if not authed_user.get("access_token") and not payload.get("access_token"):
            errors.append("Missing access token")
        if not authed_user.get("scope") and not payload.get("scope"):
            errors.append("Missing scope")

        slack_user_id = authed_user.get("id")
        if slack_user_id and not is_valid_slack_user_id(slack_user_id):
            errors.append("Invalid Slack User ID format")

        return errors

    @staticmethod
    def token_type(payload: Dict[str, Any]) -> TokenType:
        """
        Classify the tokens present in a payload.

        A bot token equal to the user token does not count as a bot token,
        and a payload with neither token classifies as ``user``.
        """
        user_token = _section(payload, "authed_user").get("access_token")
        bot_token = payload.get("access_token")

        has_user = bool(user_token)
        has_bot = bool(bot_token) and bot_token != user_token

        if has_user and has_bot:
            return TokenType.BOTH
        if has_bot:
            return TokenType.BOT
        return TokenType.USER

    @staticmethod
    def mask(payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Copy of the payload with both access tokens replaced for logging.

        Every other field is preserved as-is.
        """
        masked = copy.deepcopy(payload)
        if "access_token" in masked:
            masked["access_token"] = MASK
        authed_user = masked.get("authed_user")
        if isinstance(authed_user, dict) and "access_token" in authed_user:
            authed_user["access_token"] = MASK
        return masked
