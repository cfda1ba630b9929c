# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Data models for the Slack reaction pipeline.

Pydantic v2 models for stored records (connections, webhooks, processed
events, tasks), per-user Slack settings, and the inbound Events API
payloads.
"""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


WORKSPACE_ID_PATTERN = r"^T[A-Z0-9]{8,}$"
SLACK_USER_ID_PATTERN = r"^U[A-Z0-9]{8,}$"

# Scopes a connection needs before it can read messages and reactions.
BASIC_SCOPES = ("channels:read", "chat:write")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_slack_user_id(value: Optional[str]) -> bool:
    return bool(value) and re.match(SLACK_USER_ID_PATTERN, value) is not None


def is_valid_workspace_id(value: Optional[str]) -> bool:
    return bool(value) and re.match(WORKSPACE_ID_PATTERN, value) is not None


def split_scopes(scope: str) -> List[str]:
    return [s.strip() for s in (scope or "").split(",") if s.strip()]


class Urgency(str, Enum):
    """Urgency bucket a reaction maps to."""
    TODAY = "today"
    TOMORROW = "tomorrow"
    LATER = "later"


class TaskSource(str, Enum):
    MANUAL = "manual"
    SLACK_WEBHOOK = "slack_webhook"


class TaskStatus(str, Enum):
    OPEN = "open"
    DONE = "done"


class Connection(BaseModel):
    """
    OAuth-derived link between a user and a Slack workspace.

    Unique per (user_id, workspace_id). The access token is the
    user-scoped token when the OAuth exchange returned one.
    """
    model_config = ConfigDict(frozen=False)

    id: str = Field(..., description="Internal connection ID")
    user_id: str = Field(..., description="Owning user ID")
    workspace_id: str = Field(..., description="Slack team ID (e.g., 'T01ABCDEF2')")
    workspace_name: str = Field(..., description="Workspace display name")
    team_name: str = Field(..., description="Team name reported by Slack")
    access_token: str = Field(..., description="Token used for Web API calls")
    scope: str = Field(default="", description="Comma-separated granted scopes")
    bot_user_id: Optional[str] = Field(default=None, description="Bot user ID if a bot token was issued")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def scopes(self) -> List[str]:
        return split_scopes(self.scope)

    def has_basic_scopes(self) -> bool:
        """Whether the scope string grants message and reaction access."""
        granted = set(self.scopes)
        return all(scope in granted for scope in BASIC_SCOPES)

    def has_valid_workspace_id(self) -> bool:
        return is_valid_workspace_id(self.workspace_id)

    def summary(self) -> Dict[str, Any]:
        """Connection details safe to return to the owner (no token)."""
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'workspace_name': self.workspace_name,
            'team_name': self.team_name,
            'scope': self.scope,
            'basic_scopes': self.has_basic_scopes(),
            'created_at': self.created_at.isoformat(),
        }


class Webhook(BaseModel):
    """
    Per-connection inbound endpoint registration.

    The public ``webhook_id`` appears in the events URL; ``webhook_secret``
    never leaves the service.
    """
    model_config = ConfigDict(frozen=False)

    id: str
    user_id: str
    connection_id: str
    webhook_id: str = Field(..., min_length=1, description="Opaque public identifier")
    webhook_secret: str = Field(..., min_length=1, description="Server-side secret")
    is_active: bool = True
    event_count: int = Field(default=0, ge=0)
    last_event_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def public_view(self, url: str) -> Dict[str, Any]:
        return {
            'webhook_id': self.webhook_id,
            'connection_id': self.connection_id,
            'url': url,
            'is_active': self.is_active,
            'event_count': self.event_count,
            'last_event_at': self.last_event_at.isoformat() if self.last_event_at else None,
        }


class ProcessedEvent(BaseModel):
    """
    Deduplication record for one reaction event.

    ``todo_id`` stays empty while the event is reserved and is filled in
    once the task has been created.
    """
    event_key: str
    user_id: str
    channel_id: str = ""
    message_ts: str = ""
    reaction: str = ""
    todo_id: Optional[str] = None
    processed_at: datetime = Field(default_factory=utcnow)


class EmojiUrgencyMap(BaseModel):
    """Per-user mapping from urgency buckets to emoji names."""
    model_config = ConfigDict(frozen=True)

    today_emoji: str
    tomorrow_emoji: str
    later_emoji: str

    def urgency_for(self, reaction: str) -> Optional[Urgency]:
        """Bucket for a reaction name, or None when it is not configured."""
        if reaction == self.today_emoji:
            return Urgency.TODAY
        if reaction == self.tomorrow_emoji:
            return Urgency.TOMORROW
        if reaction == self.later_emoji:
            return Urgency.LATER
        return None


class UserSlackProfile(BaseModel):
    """Slack-related settings stored on the user record."""
    model_config = ConfigDict(frozen=False)

    user_id: str
    slack_user_id: Optional[str] = Field(
        default=None,
        description="Slack user ID (e.g., 'U01ABCDEF2')",
        pattern=SLACK_USER_ID_PATTERN
    )
    webhook_notifications_enabled: bool = True


class Task(BaseModel):
    """To-do record created from a reaction (minimal view)."""
    model_config = ConfigDict(frozen=False)

    id: str
    user_id: str
    title: str
    body: str
    urgency: Urgency
    deadline: Optional[date] = None
    created_via: TaskSource = TaskSource.MANUAL
    status: TaskStatus = TaskStatus.OPEN
    importance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=utcnow)


class SlackMessage(BaseModel):
    """Message a reaction was added to."""
    text: str = ""
    user: Optional[str] = None
    ts: str
    channel: str
    thread_ts: Optional[str] = None


class ReactionItem(BaseModel):
    model_config = ConfigDict(extra='ignore')

    type: str = "message"
    channel: str = ""
    ts: str = ""

    @field_validator('channel', 'ts', mode='before')
    @classmethod
    def null_as_empty(cls, v):
        return "" if v is None else v


class ReactionEvent(BaseModel):
    """
    ``reaction_added`` event body.

    Every identifier defaults to an empty string so that incomplete
    payloads still produce a deterministic event key.
    """
    model_config = ConfigDict(extra='ignore')

    type: str = "reaction_added"
    user: str = ""
    reaction: str = ""
    item_user: Optional[str] = None
    item: ReactionItem = Field(default_factory=ReactionItem)
    event_ts: Optional[str] = None

    @field_validator('user', 'reaction', mode='before')
    @classmethod
    def null_as_empty(cls, v):
        return "" if v is None else v

    @field_validator('item', mode='before')
    @classmethod
    def null_item_as_empty(cls, v):
        return {} if v is None else v


class EventEnvelope(BaseModel):
    """Outer Events API payload."""
    model_config = ConfigDict(extra='ignore')

    type: str
    token: Optional[str] = None
    challenge: Optional[str] = None
    team_id: Optional[str] = None
    event_id: Optional[str] = None
    event: Optional[Dict[str, Any]] = None

    def reaction_event(self) -> Optional[ReactionEvent]:
        """The reaction payload when this is a ``reaction_added`` callback."""
        if self.type != "event_callback" or not isinstance(self.event, dict):
            return None
        if self.event.get("type") != "reaction_added":
            return None
        return ReactionEvent.model_validate(self.event)
