# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Dependency wiring.

Everything the request handlers need is built once at startup into a
Dependencies instance that is passed to the API explicitly.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from openai import AsyncOpenAI

from reactodo.config import ReactodoConfig
from reactodo.connection_service import ConnectionLifecycleService
from reactodo.connection_store import ConnectionStore, InMemoryConnectionStore, PostgresConnectionStore
from reactodo.database import Database
from reactodo.emoji_mapping import EmojiMappingResolver
from reactodo.encryption import TokenCipher
from reactodo.event_store import InMemoryProcessedEventStore, PostgresProcessedEventStore, ProcessedEventStore
from reactodo.identity import IdentityService
from reactodo.idempotency import IdempotencyGuard
from reactodo.message_fetcher import MessageFetcher
from reactodo.oauth_client import SlackOAuthClient
from reactodo.oauth_validator import OAuthTokenValidator
from reactodo.pipeline import WebhookEventPipeline
from reactodo.settings_service import SettingsService
from reactodo.slack_api_client import SlackAPIClient
from reactodo.task_materializer import TaskMaterializer
from reactodo.task_store import InMemoryTaskStore, PostgresTaskStore, TaskStore
from reactodo.title_generator import TitleGenerator
from reactodo.user_store import InMemoryUserStore, PostgresUserStore, UserStore
from reactodo.webhook_authorizer import WebhookAuthorizer


logger = logging.getLogger(__name__)


@dataclass
class Dependencies:
    config: ReactodoConfig
    connections: ConnectionStore
    events: ProcessedEventStore
    users: UserStore
    tasks: TaskStore
    identity: IdentityService
    pipeline: WebhookEventPipeline
    connection_service: ConnectionLifecycleService
    settings_service: SettingsService
    database: Optional[Database] = None

    async def start(self) -> None:
        if self.database is not None:
            await self.database.connect()
            await self.database.initialize_schema()

    async def close(self) -> None:
        if self.database is not None:
            await self.database.disconnect()


def build_dependencies(
    config: ReactodoConfig,
    slack_client: Optional[SlackAPIClient] = None,
    openai_client: Optional[AsyncOpenAI] = None,
    oauth_client: Optional[SlackOAuthClient] = None
) -> Dependencies:
    """
    Build the service graph for ``config``.

    Postgres stores are used when DATABASE_URL is set, in-memory stores
    otherwise. Clients can be passed in to replace the network-backed
    defaults.
    """
    database = None
    if config.database_url:
        database = Database(config.database_url)
        connections = PostgresConnectionStore(database, TokenCipher(config.encryption_key))
        events = PostgresProcessedEventStore(database)
        users = PostgresUserStore(database)
        tasks = PostgresTaskStore(database)
    else:
        logger.warning("DATABASE_URL not set, using in-memory storage")
        connections = InMemoryConnectionStore()
        events = InMemoryProcessedEventStore()
        users = InMemoryUserStore()
        tasks = InMemoryTaskStore()

    if slack_client is None:
        slack_client = SlackAPIClient(
            max_retries=config.max_retries,
            retry_backoff_base=config.retry_backoff_base
        )
    if openai_client is None and config.openai_api_key:
        openai_client = AsyncOpenAI(api_key=config.openai_api_key)
    if oauth_client is None:
        oauth_client = SlackOAuthClient(
            client_id=config.slack_client_id,
            client_secret=config.slack_client_secret,
            redirect_uri=f"{config.app_base_url}/api/slack/oauth/callback"
        )

    resolver = EmojiMappingResolver()
    guard = IdempotencyGuard(events)

    pipeline = WebhookEventPipeline(
        authorizer=WebhookAuthorizer(connections, users),
        guard=guard,
        emoji_resolver=resolver,
        users=users,
        connections=connections,
        message_fetcher=MessageFetcher(slack_client, config.message_fetch_timeout_seconds),
        title_generator=TitleGenerator(
            openai_client,
            model=config.openai_model,
            timeout_seconds=config.title_timeout_seconds
        ),
        materializer=TaskMaterializer(tasks, guard),
    )

    return Dependencies(
        config=config,
        connections=connections,
        events=events,
        users=users,
        tasks=tasks,
        identity=IdentityService(config.jwt_secret),
        pipeline=pipeline,
        connection_service=ConnectionLifecycleService(
            connections=connections,
            users=users,
            oauth_client=oauth_client,
            validator=OAuthTokenValidator(),
            app_base_url=config.app_base_url,
        ),
        settings_service=SettingsService(users, resolver),
        database=database,
    )
