# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Property-based tests for credential redaction in logs.

Slack tokens, webhook secrets and OpenAI keys must never reach a log
line, wherever in the record they appear.
"""

import io
import logging

from hypothesis import given, settings, strategies as st

from reactodo.logging_config import JSONFormatter, SensitiveDataFilter


@st.composite
def slack_token(draw):
    prefix = draw(st.sampled_from(['xoxb', 'xoxp', 'xoxa', 'xoxr']))
    token_part = draw(st.text(
        alphabet='abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789',
        min_size=20,
        max_size=50
    ))
    return f"{prefix}-{token_part}"


openai_key = st.builds(
    lambda body: f"sk-{body}",
    st.text(alphabet='abcdefghijklmnopqrstuvwxyz0123456789', min_size=20, max_size=40)
)
webhook_secret = st.text(alphabet='0123456789abcdef', min_size=128, max_size=128)


def render(message, *args, **extra):
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(SensitiveDataFilter())
    logger = logging.getLogger("reactodo.test.redaction")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(handler)
    try:
        logger.info(message, *args, extra=extra)
    finally:
        logger.removeHandler(handler)
    return stream.getvalue()


@given(token=slack_token())
@settings(max_examples=50)
def test_token_in_message(token):
    assert token not in render(f"Calling Slack with {token}")


@given(token=slack_token())
@settings(max_examples=50)
def test_token_in_args(token):
    assert token not in render("Calling Slack with %s", token)


@given(token=slack_token(), secret=webhook_secret)
@settings(max_examples=50)
def test_secrets_in_extra_fields(token, secret):
    output = render("Connection saved", access_token=token, webhook_secret=secret, webhook_id="wh1")

    assert token not in output
    assert secret not in output
    assert "wh1" in output


@given(user_token=slack_token(), bot_token=slack_token())
@settings(max_examples=50)
def test_tokens_in_nested_payload(user_token, bot_token):
    output = render("OAuth response", response={
        'ok': True,
        'access_token': bot_token,
        'authed_user': {'id': 'U0INSTALL01', 'access_token': user_token},
    })

    assert user_token not in output
    assert bot_token not in output
    assert 'U0INSTALL01' in output


@given(key=openai_key)
@settings(max_examples=50)
def test_openai_key(key):
    assert key not in render("OpenAI client configured", config=f"api key {key}")
