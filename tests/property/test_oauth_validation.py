# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Property-based tests for OAuth response validation.

Every violated rule is reported, the user token wins over the bot
token, and masking hides both tokens without touching anything else.
"""

from hypothesis import given, settings, strategies as st

from reactodo.oauth_validator import MASK, OAuthTokenValidator, TokenType


validator = OAuthTokenValidator()
token = st.from_regex(r"xox[bp]-[a-z0-9]{6,12}", fullmatch=True)
team_id = st.from_regex(r"T[A-Z0-9]{8,10}", fullmatch=True)
slack_user_id = st.from_regex(r"U[A-Z0-9]{8,10}", fullmatch=True)


@st.composite
def oauth_payload(draw):
    payload = {'ok': draw(st.booleans())}
    if draw(st.booleans()):
        payload['error'] = draw(st.sampled_from(['invalid_code', 'access_denied']))
    team = {}
    if draw(st.booleans()):
        team['id'] = draw(team_id)
    if draw(st.booleans()):
        team['name'] = draw(st.text(min_size=1, max_size=10))
    payload['team'] = team
    authed_user = {}
    if draw(st.booleans()):
        authed_user['id'] = draw(st.one_of(slack_user_id, st.just('bob')))
    if draw(st.booleans()):
        authed_user['access_token'] = draw(token)
    if draw(st.booleans()):
        authed_user['scope'] = 'channels:read,chat:write'
    payload['authed_user'] = authed_user
    if draw(st.booleans()):
        payload['access_token'] = draw(token)
    if draw(st.booleans()):
        payload['scope'] = 'chat:write'
    return payload


@given(payload=oauth_payload())
@settings(max_examples=200)
def test_every_violation_is_reported(payload):
    errors = validator.validate(payload).errors
    team = payload['team']
    user = payload['authed_user']

    assert ("OAuth response indicates failure" in errors) == (payload['ok'] is not True)
    assert ("Missing team ID" in errors) == ('id' not in team)
    assert ("Missing team name" in errors) == ('name' not in team)
    assert ("Missing access token" in errors) == ('access_token' not in user and 'access_token' not in payload)
    assert ("Missing scope" in errors) == ('scope' not in user and 'scope' not in payload)
    assert ("Invalid Slack User ID format" in errors) == (user.get('id') == 'bob')
    if 'error' in payload:
        assert f"OAuth error: {payload['error']}" in errors


@given(payload=oauth_payload())
@settings(max_examples=200)
def test_valid_only_without_errors(payload):
    result = validator.validate(payload)

    assert result.is_valid == (not result.errors)
    if result.connection is not None:
        user_token = payload['authed_user'].get('access_token')
        assert result.connection.access_token == (user_token or payload['access_token'])


@given(user_token=st.one_of(st.none(), token), bot_token=st.one_of(st.none(), token))
@settings(max_examples=100)
def test_token_type_classification(user_token, bot_token):
    payload = {'authed_user': {'access_token': user_token}, 'access_token': bot_token}

    token_type = validator.token_type(payload)

    if user_token and bot_token and user_token != bot_token:
        assert token_type is TokenType.BOTH
    elif bot_token and not user_token:
        assert token_type is TokenType.BOT
    else:
        assert token_type is TokenType.USER


@given(payload=oauth_payload())
@settings(max_examples=100)
def test_mask_hides_tokens_and_keeps_everything_else(payload):
    masked = validator.mask(payload)

    if 'access_token' in payload:
        assert masked['access_token'] == MASK
    if 'access_token' in payload['authed_user']:
        assert masked['authed_user']['access_token'] == MASK
    for key, value in payload.items():
        if key not in ('access_token', 'authed_user'):
            assert masked[key] == value
    for key, value in payload['authed_user'].items():
        if key != 'access_token':
            assert masked['authed_user'][key] == value
    assert payload.get('access_token') != MASK
