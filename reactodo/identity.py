# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Authenticated user identity for the settings and connection endpoints.

Requests carry ``Authorization: Bearer <jwt>`` signed with HS256 by the
app's auth service; the ``sub`` claim is the user ID.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt


logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when a request carries no usable bearer token."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class IdentityService:

    ALGORITHM = 'HS256'

    def __init__(self, jwt_secret: str):
        self._secret = jwt_secret

    def user_id_from_header(self, authorization: Optional[str]) -> str:
        """
        Resolve the user behind an Authorization header.

        Raises:
            AuthenticationError: If the header is missing, malformed, expired
                or signed with another key
        """
        if not authorization or not authorization.startswith('Bearer '):
            raise AuthenticationError('Missing bearer token')

        token = authorization[len('Bearer '):].strip()
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self.ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError('Token expired')
        except jwt.InvalidTokenError as e:
            logger.info("Rejected bearer token", extra={'error_type': type(e).__name__})
            raise AuthenticationError('Invalid token')

        user_id = claims.get('sub')
        if not user_id:
            raise AuthenticationError('Token has no subject')
        return str(user_id)

    def issue_token(self, user_id: str, expires_in: int = 3600) -> str:
        """Sign a token for ``user_id``; used by local tooling and tests."""
        now = datetime.now(timezone.utc)
        return jwt.encode(
            {'sub': user_id, 'iat': now, 'exp': now + timedelta(seconds=expires_in)},
            self._secret,
            algorithm=self.ALGORITHM
        )
