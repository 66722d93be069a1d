"""
auth_manager.py
Firebase-based authentication for workspace users.
Sign-in flows go through the Identity Toolkit REST API (the Admin SDK cannot
verify end-user credentials); Firestore keeps the users/{uid} profile document.
Supports email/password, Google Sign-In and phone (SMS) verification.
"""

import re
import secrets
from urllib.parse import urlencode

import requests
from authlib.integrations.base_client.errors import OAuthError
from authlib.integrations.requests_client import OAuth2Session
from firebase_admin import auth, firestore
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from utils import firebase as firebase_utils
from utils.config import (
    HTTP_TIMEOUT,
    IDENTITY_TOOLKIT_URL,
    USERS_COLLECTION,
    get_setting,
    get_web_api_key,
)
from utils.firebase_config import GOOGLE_OAUTH

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# E.164: leading +, no leading zero, 8 to 15 digits in total
PHONE_PATTERN = re.compile(r"^\+[1-9][0-9]{7,14}$")
MIN_PASSWORD_LENGTH = 6
VERIFICATION_CODE_LENGTH = 6
VERIFICATION_CODE_PATTERN = re.compile(r"[0-9]{6}")

GOOGLE_AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_SCOPES = ["openid", "email", "profile"]
OAUTH_STATE_MAX_AGE = 600
OAUTH_STATE_SALT = "google-oauth-state"

NETWORK_ERROR_MESSAGE = "Could not reach the authentication service. Check your connection."

# Identity Toolkit error codes -> user-facing messages
ERROR_MESSAGES = {
    'EMAIL_NOT_FOUND': "Incorrect email or password.",
    'INVALID_PASSWORD': "Incorrect email or password.",
    'INVALID_LOGIN_CREDENTIALS': "Incorrect email or password.",
    'TOO_MANY_ATTEMPTS_TRY_LATER': "Too many attempts. Try again later.",
    'EMAIL_EXISTS': "This email is already used by another account.",
    'WEAK_PASSWORD': "Password too weak. Use at least 6 characters.",
    'INVALID_EMAIL': "Invalid email.",
    'MISSING_EMAIL': "Invalid email.",
    'INVALID_PHONE_NUMBER': "Invalid phone number. Use the format +5511999999999",
    'QUOTA_EXCEEDED': "SMS quota exceeded. Try again later.",
    'INVALID_CODE': "Invalid verification code.",
    'INVALID_SESSION_INFO': "Verification session expired. Please request a new code.",
    'SESSION_EXPIRED': "Verification code expired. Please request a new code.",
    'CAPTCHA_CHECK_FAILED': "reCAPTCHA verification failed. Try again.",
    'USER_DISABLED': "This account has been disabled.",
}


def validate_email(email):
    if not email or not EMAIL_PATTERN.match(email.strip()):
        return False, "Invalid email."
    return True, ""


def validate_password(password, confirm=None):
    """Validate a new password (Firebase minimum) and its confirmation"""
    if not password:
        return False, "Please fill in all fields."
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if confirm is not None and password != confirm:
        return False, "Passwords do not match."
    return True, "Password is valid"


def validate_phone_number(phone_number):
    if not phone_number or not PHONE_PATTERN.match(phone_number.strip()):
        return False, "Invalid phone number. Use the format +5511999999999"
    return True, ""


def validate_verification_code(code):
    code = (code or "").strip()
    if not VERIFICATION_CODE_PATTERN.fullmatch(code):
        return False, f"Please enter the complete {VERIFICATION_CODE_LENGTH}-digit code."
    return True, ""


def map_auth_error(error_message, fallback):
    """Map an Identity Toolkit error message to user-facing text.

    Errors sometimes carry detail after the code, e.g.
    "WEAK_PASSWORD : Password should be at least 6 characters".
    """
    code = (error_message or "").split(":")[0].strip()
    return ERROR_MESSAGES.get(code, fallback)


def _identity_toolkit(endpoint, payload, fallback):
    """POST to accounts:<endpoint>; returns (True, response json) or (False, message)"""
    api_key = get_web_api_key()
    if not api_key:
        print("ERROR: FIREBASE_WEB_API_KEY not configured. Sign-in disabled.")
        print("Add web_api_key to the [firebase] section of your Streamlit secrets.")
        return False, "Authentication is not configured."

    url = f"{IDENTITY_TOOLKIT_URL}/accounts:{endpoint}?key={api_key}"
    try:
        response = requests.post(url, json=payload, timeout=HTTP_TIMEOUT)
    except requests.exceptions.RequestException as e:
        print(f"Network error during {endpoint}: {e}")
        return False, NETWORK_ERROR_MESSAGE

    if response.status_code != 200:
        try:
            error_msg = response.json().get('error', {}).get('message', '')
        except ValueError:
            error_msg = ''
        print(f"Firebase auth error ({endpoint}): {error_msg or response.status_code}")
        return False, map_auth_error(error_msg, fallback)

    return True, response.json()


def _session_user(data, provider):
    """Build the session user dict from an Identity Toolkit sign-in response"""
    return {
        'uid': data.get('localId'),
        'email': data.get('email') or None,
        'display_name': data.get('displayName') or None,
        'photo_url': data.get('photoUrl') or None,
        'phone_number': data.get('phoneNumber') or None,
        'id_token': data.get('idToken'),
        'refresh_token': data.get('refreshToken'),
        'provider': provider,
    }


def ensure_user_document(user):
    """Create users/{uid} on first sign-in, otherwise stamp lastLogin"""
    db = firebase_utils.db
    if db is None or not user.get('uid'):
        return
    try:
        user_ref = db.collection(USERS_COLLECTION).document(user['uid'])
        if user_ref.get().exists:
            user_ref.update({'lastLogin': firestore.SERVER_TIMESTAMP})
        else:
            user_ref.set({
                'email': user.get('email'),
                'displayName': user.get('display_name'),
                'photoURL': user.get('photo_url'),
                'createdAt': firestore.SERVER_TIMESTAMP,
                'lastLogin': firestore.SERVER_TIMESTAMP,
            })
    except Exception as e:
        # Sign-in already succeeded; the profile document is best effort
        print(f"Warning: could not update user document for {user['uid']}: {e}")


def sign_in_with_email_password(email, password):
    """Authenticate with email and password"""
    if not email or not password:
        return False, "Please fill in all fields."

    ok, data = _identity_toolkit('signInWithPassword', {
        'email': email.strip(),
        'password': password,
        'returnSecureToken': True,
    }, "An error occurred while signing in. Please try again.")
    if not ok:
        return False, data

    user = _session_user(data, 'password')
    ensure_user_document(user)
    return True, user


def register_user(email, password, confirm_password=None):
    """Create a new account with email and password"""
    if not email or not password or (confirm_password is not None and not confirm_password):
        return False, "Please fill in all fields."
    is_valid, message = validate_email(email)
    if not is_valid:
        return False, message
    is_valid, message = validate_password(password, confirm_password)
    if not is_valid:
        return False, message

    ok, data = _identity_toolkit('signUp', {
        'email': email.strip(),
        'password': password,
        'returnSecureToken': True,
    }, "An error occurred while creating the account.")
    if not ok:
        return False, data

    user = _session_user(data, 'password')
    ensure_user_document(user)
    return True, user


def send_password_reset(email):
    """Send the Firebase password reset email"""
    if not email or not email.strip():
        return False, "Please enter your email."
    email = email.strip()

    ok, data = _identity_toolkit('sendOobCode', {
        'requestType': 'PASSWORD_RESET',
        'email': email,
    }, "An error occurred while sending the reset email.")
    if not ok:
        return False, data
    return True, f"A password reset link was sent to {email}."


def _state_serializer():
    secret = get_setting("oauth_state_secret") or GOOGLE_OAUTH['client_secret'] or ""
    return URLSafeTimedSerializer(secret, salt=OAUTH_STATE_SALT)


def make_oauth_state():
    """Signed, timestamped OAuth state; session state does not survive the redirect"""
    return _state_serializer().dumps({'nonce': secrets.token_urlsafe(16)})


def verify_oauth_state(state, max_age=OAUTH_STATE_MAX_AGE):
    if not state:
        return False
    try:
        _state_serializer().loads(state, max_age=max_age)
    except SignatureExpired:
        print("Warning: Google sign-in state expired")
        return False
    except BadSignature:
        print("Warning: Google sign-in state has an invalid signature")
        return False
    return True


def _google_session():
    return OAuth2Session(
        client_id=GOOGLE_OAUTH['client_id'],
        client_secret=GOOGLE_OAUTH['client_secret'],
        scope=GOOGLE_SCOPES,
        redirect_uri=GOOGLE_OAUTH['redirect_uri'],
        default_timeout=HTTP_TIMEOUT,
    )


def google_authorization_url(state):
    """Google OAuth consent URL for the redirect sign-in flow"""
    url, _ = _google_session().create_authorization_url(
        GOOGLE_AUTHORIZATION_ENDPOINT,
        state=state,
        prompt='select_account',
    )
    return url


def exchange_google_code(code):
    """Exchange an OAuth authorization code for a Google ID token"""
    if not GOOGLE_OAUTH['client_id'] or not GOOGLE_OAUTH['client_secret']:
        print("ERROR: google_client_id/google_client_secret not configured.")
        return False, "Google sign-in is not configured."
    try:
        token = _google_session().fetch_token(GOOGLE_TOKEN_ENDPOINT, code=code)
    except OAuthError as e:
        print(f"Google token exchange failed: {getattr(e, 'description', '') or e}")
        return False, "An error occurred while signing in with Google."
    except requests.exceptions.RequestException as e:
        print(f"Network error during Google token exchange: {e}")
        return False, NETWORK_ERROR_MESSAGE

    google_id_token = token.get('id_token')
    if not google_id_token:
        return False, "An error occurred while signing in with Google."
    return True, google_id_token


def sign_in_with_google(google_id_token):
    """Sign in to Firebase with a Google ID token"""
    ok, data = _identity_toolkit('signInWithIdp', {
        'postBody': urlencode({'id_token': google_id_token, 'providerId': 'google.com'}),
        'requestUri': GOOGLE_OAUTH['redirect_uri'],
        'returnIdpCredential': True,
        'returnSecureToken': True,
    }, "An error occurred while signing in with Google.")
    if not ok:
        return False, data

    user = _session_user(data, 'google.com')
    ensure_user_document(user)
    return True, user


def get_recaptcha_site_key():
    """Site key for the reCAPTCHA widget required by phone sign-in"""
    api_key = get_web_api_key()
    if not api_key:
        return None
    try:
        response = requests.get(f"{IDENTITY_TOOLKIT_URL}/recaptchaParams",
                                params={'key': api_key}, timeout=HTTP_TIMEOUT)
        response.raise_for_status()
        return response.json().get('recaptchaSiteKey')
    except (requests.exceptions.RequestException, ValueError) as e:
        print(f"Error fetching reCAPTCHA params: {e}")
        return None


def start_phone_sign_in(phone_number, recaptcha_token):
    """Send the SMS code; returns (True, session_info) for confirm_phone_code"""
    is_valid, message = validate_phone_number(phone_number)
    if not is_valid:
        return False, message

    payload = {'phoneNumber': phone_number.strip()}
    if recaptcha_token:
        payload['recaptchaToken'] = recaptcha_token

    ok, data = _identity_toolkit('sendVerificationCode', payload,
                                 "An error occurred while sending the verification code.")
    if not ok:
        return False, data
    return True, data.get('sessionInfo')


def confirm_phone_code(session_info, code):
    """Confirm the SMS code received after start_phone_sign_in"""
    if not session_info:
        return False, "Verification session expired. Please request a new code."
    is_valid, message = validate_verification_code(code)
    if not is_valid:
        return False, message

    ok, data = _identity_toolkit('signInWithPhoneNumber', {
        'sessionInfo': session_info,
        'code': code.strip(),
    }, "An error occurred while verifying the code.")
    if not ok:
        return False, data

    user = _session_user(data, 'phone')
    ensure_user_document(user)
    return True, user


def sign_out(uid):
    """Revoke refresh tokens for the user; the caller clears the session"""
    if uid:
        try:
            auth.revoke_refresh_tokens(uid)
        except auth.UserNotFoundError:
            print(f"Warning: sign-out for unknown user {uid}")
        except Exception as e:
            print(f"Warning: could not revoke tokens for {uid}: {e}")
    return True, "Signed out."
