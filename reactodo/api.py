# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
HTTP API for the Reactodo service.

Endpoints:
- POST /api/slack/events/user/{webhook_id} - Slack Events API deliveries
- GET  /api/slack/events/user/{webhook_id} - Endpoint status
- GET  /api/slack/oauth/callback - OAuth installation callback
- GET/DELETE /api/slack/connections - List or disconnect all workspaces
- DELETE /api/slack/connections/{connection_id} - Disconnect one workspace
- GET/POST /api/slack/webhooks, DELETE /api/slack/webhooks/{webhook_id}
- GET/PUT/DELETE /api/settings/emoji - Reaction emoji mapping
- PUT /api/settings/slack-user-id - Slack user ID
- GET /health
"""

import functools
import json
import logging
from typing import Optional

from aiohttp import web
from slack_sdk.signature import SignatureVerifier

from reactodo.container import Dependencies
from reactodo.errors import ServiceResult
from reactodo.identity import AuthenticationError
from reactodo.logging_config import log_error_with_context
from reactodo.pipeline import outcome_body, outcome_status


logger = logging.getLogger(__name__)


def authenticated(handler):
    """Resolve the bearer token to a user ID before calling ``handler``."""

    @functools.wraps(handler)
    async def wrapper(self: "ReactodoAPI", request: web.Request) -> web.StreamResponse:
        try:
            user_id = self.deps.identity.user_id_from_header(request.headers.get('Authorization'))
        except AuthenticationError as e:
            return web.json_response({'success': False, 'error': e.message}, status=401)
        return await handler(self, request, user_id)

    return wrapper


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in request", extra={'path': request.path, 'error': str(e)})
        return web.json_response({'success': False, 'error': 'Invalid JSON'}, status=400)
    except Exception as e:
        log_error_with_context(logger, "Unhandled error in request handler", e, path=request.path)
        return web.json_response({'success': False, 'error': 'Internal server error'}, status=500)


def service_response(result: ServiceResult) -> web.Response:
    return web.json_response(result.to_dict(), status=result.status_code)


class ReactodoAPI:
    """aiohttp application exposing the Slack integration."""

    def __init__(self, deps: Dependencies):
        self.deps = deps
        secret = deps.config.slack_signing_secret
        self.signature_verifier: Optional[SignatureVerifier] = SignatureVerifier(secret) if secret else None
        self.app = web.Application(middlewares=[error_middleware])
        self._setup_routes()

    def _setup_routes(self) -> None:
        router = self.app.router
        router.add_post('/api/slack/events/user/{webhook_id}', self.handle_event)
        router.add_get('/api/slack/events/user/{webhook_id}', self.event_endpoint_status)
        router.add_get('/api/slack/oauth/callback', self.handle_oauth_callback)
        router.add_get('/api/slack/connections', self.list_connections)
        router.add_delete('/api/slack/connections', self.disconnect_all)
        router.add_delete('/api/slack/connections/{connection_id}', self.disconnect)
        router.add_get('/api/slack/webhooks', self.list_webhooks)
        router.add_post('/api/slack/webhooks', self.create_webhook)
        router.add_delete('/api/slack/webhooks/{webhook_id}', self.deactivate_webhook)
        router.add_get('/api/settings/emoji', self.get_emoji_settings)
        router.add_put('/api/settings/emoji', self.update_emoji_settings)
        router.add_delete('/api/settings/emoji', self.reset_emoji_settings)
        router.add_put('/api/settings/slack-user-id', self.update_slack_user_id)
        router.add_get('/health', self.health_check)

    async def handle_event(self, request: web.Request) -> web.Response:
        """
        Receive a Slack Events API delivery for one user's webhook.

        Soft outcomes answer 200 so Slack does not redeliver them.
        """
        webhook_id = request.match_info['webhook_id']
        body = await request.read()

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.json_response({'success': False, 'error': 'Invalid JSON'}, status=400)

        if isinstance(payload, dict) and payload.get('type') == 'url_verification':
            return web.json_response({'challenge': payload.get('challenge')})

        if self.signature_verifier is not None:
            if not self.signature_verifier.is_valid_request(body, dict(request.headers)):
                logger.warning("Slack signature verification failed", extra={'webhook_id': webhook_id})
                return web.json_response({'success': False, 'error': 'Invalid signature'}, status=401)

        outcome = await self.deps.pipeline.process(webhook_id, payload)
        return web.json_response(outcome_body(outcome), status=outcome_status(outcome))

    async def event_endpoint_status(self, request: web.Request) -> web.Response:
        webhook_id = request.match_info['webhook_id']
        webhook = await self.deps.connections.get_webhook(webhook_id)
        if webhook is None:
            return web.json_response({'success': False, 'error': 'Webhook not found'}, status=404)
        return web.json_response({
            'webhook_id': webhook_id,
            'status': 'active' if webhook.is_active else 'inactive',
            'message': 'Slack Events API webhook endpoint',
        })

    @authenticated
    async def handle_oauth_callback(self, request: web.Request, user_id: str) -> web.Response:
        """Finish an installation and send the user back to settings."""
        oauth_error = request.query.get('error')
        if oauth_error:
            return web.json_response(
                {'success': False, 'error': 'OAuth authorization failed', 'errors': [f"OAuth error: {oauth_error}"]},
                status=400
            )

        result = await self.deps.connection_service.connect(user_id, request.query.get('code', ''))
        if not result.success:
            return service_response(result)

        raise web.HTTPFound(location=f"{self.deps.config.app_base_url}/settings?slack=connected")

    @authenticated
    async def list_connections(self, request: web.Request, user_id: str) -> web.Response:
        return service_response(await self.deps.connection_service.list_connections(user_id))

    @authenticated
    async def disconnect(self, request: web.Request, user_id: str) -> web.Response:
        connection_id = request.match_info['connection_id']
        return service_response(await self.deps.connection_service.disconnect(user_id, connection_id))

    @authenticated
    async def disconnect_all(self, request: web.Request, user_id: str) -> web.Response:
        return service_response(await self.deps.connection_service.disconnect_all(user_id))

    @authenticated
    async def list_webhooks(self, request: web.Request, user_id: str) -> web.Response:
        return service_response(await self.deps.connection_service.list_webhooks(user_id))

    @authenticated
    async def create_webhook(self, request: web.Request, user_id: str) -> web.Response:
        data = await request.json()
        connection_id = data.get('connection_id') if isinstance(data, dict) else None
        if not connection_id:
            return web.json_response({'success': False, 'error': 'connection_id is required'}, status=400)
        return service_response(await self.deps.connection_service.ensure_webhook(user_id, connection_id))

    @authenticated
    async def deactivate_webhook(self, request: web.Request, user_id: str) -> web.Response:
        webhook_id = request.match_info['webhook_id']
        return service_response(await self.deps.connection_service.deactivate_webhook(user_id, webhook_id))

    @authenticated
    async def get_emoji_settings(self, request: web.Request, user_id: str) -> web.Response:
        return service_response(await self.deps.settings_service.get_emoji_settings(user_id))

    @authenticated
    async def update_emoji_settings(self, request: web.Request, user_id: str) -> web.Response:
        data = await request.json()
        return service_response(
            await self.deps.settings_service.update_emoji_settings(user_id, data if isinstance(data, dict) else {})
        )

    @authenticated
    async def reset_emoji_settings(self, request: web.Request, user_id: str) -> web.Response:
        return service_response(await self.deps.settings_service.reset_emoji_settings(user_id))

    @authenticated
    async def update_slack_user_id(self, request: web.Request, user_id: str) -> web.Response:
        data = await request.json()
        slack_user_id = data.get('slack_user_id') if isinstance(data, dict) else None
        return service_response(await self.deps.settings_service.set_slack_user_id(user_id, slack_user_id))

    async def health_check(self, request: web.Request) -> web.Response:
        return web.json_response({'status': 'healthy', 'service': 'reactodo'})

    async def run(self, host: str = '0.0.0.0', port: int = 3000) -> web.AppRunner:
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, host, port)
        await site.start()
        logger.info("API server started", extra={'host': host, 'port': port})
        return runner
