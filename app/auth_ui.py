"""
Streamlit authentication page: email/password, Google and phone sign-in
"""

import json

import streamlit as st
import streamlit.components.v1 as components

from notifications import notify, show_notifications
from utils.auth_manager import (
    confirm_phone_code,
    exchange_google_code,
    get_recaptcha_site_key,
    google_authorization_url,
    make_oauth_state,
    register_user,
    send_password_reset,
    sign_in_with_email_password,
    sign_in_with_google,
    start_phone_sign_in,
    validate_phone_number,
    verify_oauth_state,
)
from utils.firebase_config import GOOGLE_OAUTH

# Session keys for the multi-step panels
PANEL_KEY = 'auth_panel'
PHONE_SESSION_KEY = 'phone_session_info'
PHONE_NUMBER_KEY = 'phone_number'


def _complete_sign_in(user):
    st.session_state['user'] = user
    st.session_state['authenticated'] = True
    st.session_state[PANEL_KEY] = 'main'
    st.session_state.pop(PHONE_SESSION_KEY, None)
    notify(True, "Successfully signed in!")
    st.rerun()


def _handle_google_redirect():
    """Finish the Google flow when Google redirects back with ?code=&state="""
    code = st.query_params.get('code')
    if not code:
        return
    state = st.query_params.get('state')
    st.query_params.clear()

    if not verify_oauth_state(state):
        st.error("Google sign-in could not be verified. Please try again.")
        return

    ok, result = exchange_google_code(code)
    if ok:
        ok, result = sign_in_with_google(result)
    if ok:
        _complete_sign_in(result)
    else:
        st.error(result)


def _render_recaptcha(site_key):
    """Render the reCAPTCHA widget; the solved token is shown for pasting below"""
    components.html(f"""
        <script src="https://www.google.com/recaptcha/api.js" async defer></script>
        <div class="g-recaptcha" data-sitekey={json.dumps(site_key)} data-callback="onSolved"></div>
        <textarea id="token" readonly style="width:100%;margin-top:8px;display:none"></textarea>
        <script>
          function onSolved(token) {{
            var box = document.getElementById('token');
            box.value = token;
            box.style.display = 'block';
            box.select();
          }}
        </script>
    """, height=180)


def _render_phone_panel():
    st.subheader("Sign in with phone")

    if not st.session_state.get(PHONE_SESSION_KEY):
        phone_number = st.text_input("Phone number", placeholder="+5511999999999",
                                     value=st.session_state.get(PHONE_NUMBER_KEY, ''))
        site_key = get_recaptcha_site_key()
        if site_key:
            _render_recaptcha(site_key)
        recaptcha_token = st.text_input("Verification token",
                                        help="Solve the reCAPTCHA above and paste the token shown")

        if st.button("Send code", use_container_width=True):
            ok, message = validate_phone_number(phone_number)
            if not ok:
                st.error(message)
            else:
                ok, result = start_phone_sign_in(phone_number, recaptcha_token)
                if ok:
                    st.session_state[PHONE_NUMBER_KEY] = phone_number.strip()
                    st.session_state[PHONE_SESSION_KEY] = result
                    notify(True, f"Verification code sent to {phone_number.strip()}.")
                    st.rerun()
                else:
                    st.error(result)
    else:
        st.markdown(f"Code sent to **{st.session_state.get(PHONE_NUMBER_KEY, '')}**")
        code = st.text_input("6-digit code", max_chars=6)
        col1, col2 = st.columns(2)
        with col1:
            if st.button("Verify code", use_container_width=True):
                ok, result = confirm_phone_code(st.session_state.get(PHONE_SESSION_KEY), code)
                if ok:
                    _complete_sign_in(result)
                else:
                    st.error(result)
        with col2:
            if st.button("Resend code", use_container_width=True):
                # A new reCAPTCHA is required for every send
                st.session_state.pop(PHONE_SESSION_KEY, None)
                st.rerun()

    if st.button("Back to login"):
        st.session_state.pop(PHONE_SESSION_KEY, None)
        st.session_state[PANEL_KEY] = 'main'
        st.rerun()


def _render_recovery_panel():
    st.subheader("Recover password")
    with st.form("recovery_form"):
        email = st.text_input("Email", placeholder="you@example.com")
        if st.form_submit_button("Send recovery link", use_container_width=True):
            ok, message = send_password_reset(email)
            if ok:
                notify(True, message)
                st.session_state[PANEL_KEY] = 'main'
                st.rerun()
            else:
                st.error(message)

    if st.button("Back to login"):
        st.session_state[PANEL_KEY] = 'main'
        st.rerun()


def _render_sign_in_tab():
    with st.form("login_form"):
        email = st.text_input("Email", placeholder="you@example.com")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Sign In", use_container_width=True):
            ok, result = sign_in_with_email_password(email, password)
            if ok:
                _complete_sign_in(result)
            else:
                st.error(result)

    if st.button("Forgot my password"):
        st.session_state[PANEL_KEY] = 'recovery'
        st.rerun()


def _render_register_tab():
    with st.form("registration_form"):
        email = st.text_input("Email", placeholder="you@example.com")
        password = st.text_input("Password", type="password", placeholder="At least 6 characters")
        confirm_password = st.text_input("Confirm password", type="password")
        if st.form_submit_button("Create Account", use_container_width=True):
            ok, result = register_user(email, password, confirm_password)
            if ok:
                _complete_sign_in(result)
            else:
                st.error(result)


def auth_page():
    """Main authentication page"""
    st.title("Workspace Share")
    show_notifications()

    if PANEL_KEY not in st.session_state:
        st.session_state[PANEL_KEY] = 'main'

    _handle_google_redirect()

    if st.session_state[PANEL_KEY] == 'phone':
        _render_phone_panel()
        return
    if st.session_state[PANEL_KEY] == 'recovery':
        _render_recovery_panel()
        return

    col1, col2 = st.columns([2, 1])
    with col1:
        sign_in_tab, register_tab = st.tabs(["Sign In", "Create Account"])
        with sign_in_tab:
            _render_sign_in_tab()
        with register_tab:
            _render_register_tab()

    with col2:
        st.subheader("Other options")
        if GOOGLE_OAUTH['client_id']:
            st.link_button("Continue with Google", google_authorization_url(make_oauth_state()),
                           use_container_width=True)
        if st.button("Continue with phone", use_container_width=True):
            st.session_state[PANEL_KEY] = 'phone'
            st.rerun()
