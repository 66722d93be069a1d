# app/streamlit_app.py

import streamlit as st
import sys
import os
import time
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# initialize firebase clients (side-effect)
import utils.firebase as firebase

from auth_ui import auth_page
from invitations_ui import render_invite_form, render_manage_invitations
from notifications import notify, show_notifications
from profile_ui import render_profile_editor
from workspace_ui import TIPS, load_workspaces, render_workspace_overview, render_workspace_selector, reset_tips
from utils.auth_manager import sign_out
from utils.config import SESSION_TIMEOUT_SECONDS
from utils.invitation_manager import badge_text, check_pending_invitations
from utils.profile_manager import load_user_preferences, load_user_profile


def _logout(success_message="Signed out."):
    user = st.session_state.get('user') or {}
    sign_out(user.get('uid'))
    st.session_state['authenticated'] = False
    st.session_state['user'] = None
    st.session_state['view'] = 'home'
    st.session_state['current_workspace'] = None
    st.session_state.pop('preferences', None)
    # Clear cached data to avoid cross-account leakage of workspace data
    load_workspaces.clear()
    notify(True, success_message)
    st.rerun()


def main():
    st.set_page_config(page_title="Workspace Share", layout="wide")

    # Initialize session state
    if 'authenticated' not in st.session_state:
        st.session_state['authenticated'] = False
    if 'view' not in st.session_state:
        st.session_state['view'] = 'home'
    if 'last_activity' not in st.session_state:
        st.session_state['last_activity'] = time.time()

    # Check for session timeout (2 hours)
    if (st.session_state['authenticated']
            and time.time() - st.session_state['last_activity'] > SESSION_TIMEOUT_SECONDS):
        st.session_state['last_activity'] = time.time()
        _logout("Session expired. Please log in again.")

    st.session_state['last_activity'] = time.time()

    if firebase.db is None:
        st.error("❌ Firebase is not configured. Add a [firebase] section to Streamlit Secrets.")
        st.stop()

    # Show appropriate page based on authentication status
    if not st.session_state['authenticated']:
        auth_page()
        return

    user = st.session_state['user']
    profile = load_user_profile(user)
    if 'preferences' not in st.session_state:
        st.session_state['preferences'] = load_user_preferences(user['uid'])
    pending_count = check_pending_invitations(user.get('email'))

    with st.sidebar:
        st.image(profile['photo_url'], width=64)
        st.markdown(f"### Welcome, {profile['display_name']}!")
        if profile['email']:
            st.caption(profile['email'])

        render_workspace_selector(user)
        st.divider()

        if st.button("✏️ Edit profile", use_container_width=True):
            st.session_state['view'] = 'profile'
            st.rerun()
        if st.button("✉️ Invite user", use_container_width=True):
            st.session_state['view'] = 'invite'
            st.rerun()

        badge = badge_text(pending_count)
        if st.button(f"📬 Manage invitations {f'({badge})' if badge else ''}".strip(),
                     use_container_width=True):
            st.session_state['view'] = 'invitations'
            st.session_state['invites_opened'] = True
            st.rerun()

        if any(st.session_state['preferences'].get(key) for key in TIPS):
            if st.button("💡 Show tips again", use_container_width=True):
                reset_tips(user)

        if st.button("🚪 Sign out", use_container_width=True):
            _logout()

    show_notifications()

    view = st.session_state['view']
    if view == 'profile':
        render_profile_editor(user, profile)
    elif view == 'invite':
        render_invite_form(user)
    elif view == 'invitations':
        render_manage_invitations(user, pending_count)
    else:
        render_workspace_overview(user)

if __name__ == "__main__":
    main()
