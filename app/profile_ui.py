"""
profile_ui.py
Profile editor: nickname and avatar.
"""

import streamlit as st

from notifications import notify
from utils.profile_manager import save_user_profile, validate_avatar


def render_profile_editor(user, profile):
    """Render the profile editor for the signed-in user"""
    st.subheader("Edit profile")

    col1, col2 = st.columns([1, 2])
    with col2:
        uploaded = st.file_uploader("Change avatar", type=["png", "jpg", "jpeg", "gif", "webp"])

    avatar = None
    with col1:
        if uploaded is not None:
            ok, message = validate_avatar(uploaded.type, uploaded.size)
            if ok:
                st.image(uploaded, width=120)
                avatar = (uploaded.getvalue(), uploaded.type)
            else:
                st.error(message)
                st.image(profile['photo_url'], width=120)
        else:
            st.image(profile['photo_url'], width=120)

    with st.form("profile_form"):
        nickname = st.text_input("Nickname", value=profile['display_name'])
        st.text_input("Email", value=profile['email'], disabled=True)

        col_save, col_cancel = st.columns(2)
        with col_save:
            save = st.form_submit_button("Save", use_container_width=True)
        with col_cancel:
            cancel = st.form_submit_button("Cancel", use_container_width=True)

    if save:
        ok, result = save_user_profile(user['uid'], nickname, avatar)
        if ok:
            st.session_state['view'] = 'home'
            notify(True, "Your profile was updated.")
            st.rerun()
        else:
            st.error(result)
    if cancel:
        st.session_state['view'] = 'home'
        st.rerun()
