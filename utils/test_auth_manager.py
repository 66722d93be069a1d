"""
test_auth_manager.py
Sign-in flows with the Identity Toolkit REST API mocked out.
"""

from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from authlib.integrations.base_client.errors import OAuthError
from firebase_admin import firestore
from itsdangerous import TimestampSigner

from utils import auth_manager as am
from utils.fake_firestore import make_snapshot

SIGN_IN_RESPONSE = {
    'localId': 'uid-1',
    'email': 'ana@example.com',
    'displayName': 'Ana',
    'idToken': 'id-token',
    'refreshToken': 'refresh-token',
}


def _response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body or {}
    return response


def _error(code):
    return _response(400, {'error': {'code': 400, 'message': code}})


@pytest.fixture
def api_key():
    with patch.object(am, 'get_web_api_key', return_value='test-key'):
        yield


@pytest.fixture
def post():
    with patch.object(am.requests, 'post') as mock_post:
        yield mock_post


@pytest.fixture
def no_user_document():
    with patch.object(am, 'ensure_user_document') as ensure:
        yield ensure


def test_validators():
    assert am.validate_email("ana@example.com")[0]
    assert not am.validate_email("ana@example")[0]
    assert not am.validate_email(None)[0]
    assert am.validate_password("secret1")[0]
    assert not am.validate_password("12345")[0]
    assert am.validate_password("secret1", "secret1")[0]
    assert am.validate_password("secret1", "secret2") == (False, "Passwords do not match.")
    assert am.validate_phone_number("+5511999999999")[0]
    assert not am.validate_phone_number("11999999999")[0]
    assert not am.validate_phone_number("+0123456789")[0]
    assert am.validate_verification_code("123456")[0]
    assert not am.validate_verification_code("12345")[0]
    assert not am.validate_verification_code("12a456")[0]
    assert not am.validate_verification_code("\u0661\u0662\u0663\u0664\u0665\u0666")[0]
    assert not am.validate_phone_number("+55\u0661\u0661999999999")[0]


def test_map_auth_error_strips_detail():
    assert am.map_auth_error("WEAK_PASSWORD : Password should be at least 6 characters",
                             "fallback") == am.ERROR_MESSAGES['WEAK_PASSWORD']
    assert am.map_auth_error("SOMETHING_NEW", "fallback") == "fallback"


def test_sign_in_with_email_password(api_key, post, no_user_document):
    post.return_value = _response(body=SIGN_IN_RESPONSE)

    ok, user = am.sign_in_with_email_password(" ana@example.com ", "secret1")

    assert ok
    assert user['uid'] == 'uid-1'
    assert user['email'] == 'ana@example.com'
    assert user['display_name'] == 'Ana'
    assert user['photo_url'] is None
    assert user['provider'] == 'password'
    url = post.call_args[0][0]
    assert url.endswith("/accounts:signInWithPassword?key=test-key")
    assert post.call_args[1]['json'] == {
        'email': 'ana@example.com',
        'password': 'secret1',
        'returnSecureToken': True,
    }
    no_user_document.assert_called_once_with(user)


def test_sign_in_requires_fields(api_key, post):
    assert am.sign_in_with_email_password("", "x") == (False, "Please fill in all fields.")
    post.assert_not_called()


@pytest.mark.parametrize("code", ["EMAIL_NOT_FOUND", "INVALID_PASSWORD", "INVALID_LOGIN_CREDENTIALS"])
def test_sign_in_bad_credentials(api_key, post, code):
    post.return_value = _error(code)
    assert am.sign_in_with_email_password("ana@example.com", "wrong") == (
        False, "Incorrect email or password.")


def test_sign_in_too_many_attempts(api_key, post):
    post.return_value = _error("TOO_MANY_ATTEMPTS_TRY_LATER : Access disabled")
    assert am.sign_in_with_email_password("ana@example.com", "x")[1] == "Too many attempts. Try again later."


def test_sign_in_unknown_error_uses_generic_message(api_key, post):
    post.return_value = _response(500, None)
    post.return_value.json.side_effect = ValueError("no json")
    ok, message = am.sign_in_with_email_password("ana@example.com", "x")
    assert not ok
    assert message.startswith("An error occurred while signing in")


def test_network_error(api_key, post):
    post.side_effect = requests.exceptions.ConnectionError("down")
    assert am.sign_in_with_email_password("ana@example.com", "x") == (False, am.NETWORK_ERROR_MESSAGE)


def test_missing_api_key(post):
    with patch.object(am, 'get_web_api_key', return_value=''):
        assert am.sign_in_with_email_password("ana@example.com", "x") == (
            False, "Authentication is not configured.")
    post.assert_not_called()


def test_register_user(api_key, post, no_user_document):
    post.return_value = _response(body=SIGN_IN_RESPONSE)
    ok, user = am.register_user("ana@example.com", "secret1", "secret1")
    assert ok
    assert post.call_args[0][0].endswith("/accounts:signUp?key=test-key")
    no_user_document.assert_called_once_with(user)


def test_register_user_validation(api_key, post):
    assert am.register_user("ana@example.com", "secret1", "") == (False, "Please fill in all fields.")
    assert am.register_user("ana@example.com", "secret1", "secret2") == (False, "Passwords do not match.")
    assert am.register_user("bad", "secret1", "secret1") == (False, "Invalid email.")
    assert not am.register_user("ana@example.com", "123", "123")[0]
    post.assert_not_called()


def test_register_email_exists(api_key, post):
    post.return_value = _error("EMAIL_EXISTS")
    assert am.register_user("ana@example.com", "secret1", "secret1")[1] == (
        "This email is already used by another account.")


def test_send_password_reset(api_key, post):
    post.return_value = _response(body={'email': 'ana@example.com'})
    ok, message = am.send_password_reset(" ana@example.com ")
    assert ok
    assert "ana@example.com" in message
    assert post.call_args[1]['json'] == {'requestType': 'PASSWORD_RESET', 'email': 'ana@example.com'}


def test_send_password_reset_unknown_email(api_key, post):
    post.return_value = _error("EMAIL_NOT_FOUND")
    assert not am.send_password_reset("ana@example.com")[0]
    assert am.send_password_reset("  ") == (False, "Please enter your email.")


def test_start_phone_sign_in(api_key, post):
    post.return_value = _response(body={'sessionInfo': 'session-1'})
    assert am.start_phone_sign_in("+5511999999999", "captcha") == (True, 'session-1')
    assert post.call_args[0][0].endswith("/accounts:sendVerificationCode?key=test-key")
    assert post.call_args[1]['json'] == {'phoneNumber': '+5511999999999', 'recaptchaToken': 'captcha'}


def test_start_phone_sign_in_without_recaptcha_token(api_key, post):
    post.return_value = _response(body={'sessionInfo': 'session-1'})
    am.start_phone_sign_in("+5511999999999", "")
    assert post.call_args[1]['json'] == {'phoneNumber': '+5511999999999'}


def test_start_phone_sign_in_invalid_number(api_key, post):
    ok, message = am.start_phone_sign_in("5511", "captcha")
    assert not ok
    assert "+5511999999999" in message
    post.assert_not_called()


def test_start_phone_sign_in_quota(api_key, post):
    post.return_value = _error("QUOTA_EXCEEDED")
    assert am.start_phone_sign_in("+5511999999999", "captcha")[1] == "SMS quota exceeded. Try again later."


def test_confirm_phone_code(api_key, post, no_user_document):
    post.return_value = _response(body={'localId': 'uid-2', 'phoneNumber': '+5511999999999',
                                        'idToken': 't', 'refreshToken': 'r'})
    ok, user = am.confirm_phone_code('session-1', '123456')
    assert ok
    assert user['phone_number'] == '+5511999999999'
    assert user['provider'] == 'phone'
    assert post.call_args[1]['json'] == {'sessionInfo': 'session-1', 'code': '123456'}


def test_confirm_phone_code_errors(api_key, post):
    assert am.confirm_phone_code(None, '123456') == (
        False, "Verification session expired. Please request a new code.")
    assert not am.confirm_phone_code('session-1', '12')[0]
    post.assert_not_called()

    post.return_value = _error("INVALID_CODE")
    assert am.confirm_phone_code('session-1', '123456') == (False, "Invalid verification code.")
    post.return_value = _error("SESSION_EXPIRED")
    assert "expired" in am.confirm_phone_code('session-1', '123456')[1]


def test_get_recaptcha_site_key(api_key):
    with patch.object(am.requests, 'get') as get:
        get.return_value = _response(body={'recaptchaSiteKey': 'site-key'})
        assert am.get_recaptcha_site_key() == 'site-key'
        get.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("403")
        assert am.get_recaptcha_site_key() is None


GOOGLE_CLIENT = {'client_id': 'client-1', 'client_secret': 's', 'redirect_uri': 'http://localhost:8501'}


def test_oauth_state_round_trip():
    with patch.dict(am.GOOGLE_OAUTH, GOOGLE_CLIENT), patch.object(am, 'get_setting', return_value='secret'):
        state = am.make_oauth_state()
        assert am.verify_oauth_state(state)
        assert not am.verify_oauth_state(state + "0")
        assert not am.verify_oauth_state(None)
        assert not am.verify_oauth_state("not-a-state")


def test_oauth_state_expires():
    with patch.object(am, 'get_setting', return_value='secret'):
        with patch.object(TimestampSigner, 'get_timestamp', return_value=1000):
            state = am.make_oauth_state()
        with patch.object(TimestampSigner, 'get_timestamp', return_value=1100):
            assert am.verify_oauth_state(state)
        with patch.object(TimestampSigner, 'get_timestamp', return_value=1000 + am.OAUTH_STATE_MAX_AGE + 1):
            assert not am.verify_oauth_state(state)


def test_oauth_state_signed_with_another_secret():
    with patch.object(am, 'get_setting', return_value='secret'):
        state = am.make_oauth_state()
    with patch.object(am, 'get_setting', return_value='rotated'):
        assert not am.verify_oauth_state(state)


def test_google_authorization_url():
    with patch.dict(am.GOOGLE_OAUTH, GOOGLE_CLIENT):
        url = am.google_authorization_url('state-1')
    query = parse_qs(urlparse(url).query)
    assert url.startswith(am.GOOGLE_AUTHORIZATION_ENDPOINT)
    assert query['client_id'] == ['client-1']
    assert query['redirect_uri'] == ['http://localhost:8501']
    assert query['state'] == ['state-1']
    assert query['scope'] == ["openid email profile"]
    assert query['response_type'] == ['code']
    assert query['prompt'] == ['select_account']


@pytest.fixture
def google_session():
    with patch.dict(am.GOOGLE_OAUTH, GOOGLE_CLIENT), patch.object(am, 'OAuth2Session') as session_cls:
        yield session_cls.return_value


def test_exchange_google_code(google_session):
    google_session.fetch_token.return_value = {'access_token': 'a', 'id_token': 'google-token'}
    assert am.exchange_google_code('code-1') == (True, 'google-token')
    google_session.fetch_token.assert_called_once_with(am.GOOGLE_TOKEN_ENDPOINT, code='code-1')


def test_exchange_google_code_rejected(google_session):
    google_session.fetch_token.side_effect = OAuthError(error='invalid_grant', description='Bad Request')
    assert am.exchange_google_code('code-1') == (False, "An error occurred while signing in with Google.")


def test_exchange_google_code_network_error(google_session):
    google_session.fetch_token.side_effect = requests.exceptions.ConnectionError("down")
    assert am.exchange_google_code('code-1') == (False, am.NETWORK_ERROR_MESSAGE)


def test_exchange_google_code_without_id_token(google_session):
    google_session.fetch_token.return_value = {'access_token': 'a'}
    assert not am.exchange_google_code('code-1')[0]


def test_exchange_google_code_not_configured():
    with patch.dict(am.GOOGLE_OAUTH, {'client_id': '', 'client_secret': ''}), \
            patch.object(am, 'OAuth2Session') as session_cls:
        assert am.exchange_google_code('code-1') == (False, "Google sign-in is not configured.")
    session_cls.assert_not_called()


def test_sign_in_with_google(api_key, post, no_user_document):
    post.return_value = _response(body=dict(SIGN_IN_RESPONSE, photoUrl='https://img/ana.png'))
    ok, user = am.sign_in_with_google('google-token')
    assert ok
    assert user['provider'] == 'google.com'
    assert user['photo_url'] == 'https://img/ana.png'
    payload = post.call_args[1]['json']
    assert parse_qs(payload['postBody']) == {'id_token': ['google-token'], 'providerId': ['google.com']}
    assert post.call_args[0][0].endswith("/accounts:signInWithIdp?key=test-key")


def test_sign_out_revokes_tokens():
    with patch.object(am.auth, 'revoke_refresh_tokens') as revoke:
        assert am.sign_out('uid-1') == (True, "Signed out.")
        revoke.assert_called_once_with('uid-1')

        revoke.side_effect = RuntimeError("app not initialized")
        assert am.sign_out('uid-1')[0]


def test_ensure_user_document_creates_profile(mock_db):
    user = am._session_user(SIGN_IN_RESPONSE, 'password')
    user_ref = mock_db.collection('users').document.return_value
    user_ref.get.return_value = make_snapshot(exists=False)

    am.ensure_user_document(user)

    mock_db.collection('users').document.assert_called_with('uid-1')
    data = user_ref.set.call_args[0][0]
    assert data['email'] == 'ana@example.com'
    assert data['displayName'] == 'Ana'
    assert data['createdAt'] is firestore.SERVER_TIMESTAMP
    user_ref.update.assert_not_called()


def test_ensure_user_document_stamps_last_login(mock_db):
    user_ref = mock_db.collection('users').document.return_value
    user_ref.get.return_value = make_snapshot({'email': 'ana@example.com'})

    am.ensure_user_document({'uid': 'uid-1'})

    user_ref.update.assert_called_once_with({'lastLogin': firestore.SERVER_TIMESTAMP})
    user_ref.set.assert_not_called()


def test_ensure_user_document_tolerates_failures(mock_db):
    mock_db.collection('users').document.return_value.get.side_effect = RuntimeError("offline")
    am.ensure_user_document({'uid': 'uid-1'})
