"""
invitations_ui.py
Invite form and the invitation manager (sent / received / access tabs).
"""

import streamlit as st

from notifications import notify
from utils.config import DEFAULT_ROLE, ROLES
from utils.invitation_manager import (
    PENDING,
    badge_text,
    format_date,
    format_permission,
    get_status_badge_info,
    load_invites,
    load_shared_access,
    manage_invite,
    send_invite,
    update_user_permission,
)
from workspace_ui import get_current_workspace, load_workspaces

TABS = {
    'sent': "Sent",
    'received': "Received",
    'access': "Access",
}

# Actions that change which workspaces or roles the invitee sees
WORKSPACE_ACTIONS = {'accept', 'revoke'}


def _after_action(ok, message, refresh_workspaces=False):
    notify(ok, message)
    if ok and refresh_workspaces:
        load_workspaces.clear()
    st.rerun()


def _run_action(invite_id, action, user):
    ok, message = manage_invite(invite_id, action, user)
    _after_action(ok, message, refresh_workspaces=action in WORKSPACE_ACTIONS)


def _save_permission(invite_id, new_role, user):
    ok, message = update_user_permission(invite_id, new_role, user)
    _after_action(ok, message, refresh_workspaces=True)


def render_invite_form(user):
    workspace = get_current_workspace()
    st.subheader("Invite user")
    if workspace:
        st.caption(f"Sharing: {workspace['name']}")

    with st.form("invite_form", clear_on_submit=True):
        email = st.text_input("Email", placeholder="colleague@example.com")
        role = st.selectbox("Permission", ROLES, index=ROLES.index(DEFAULT_ROLE),
                            format_func=format_permission)
        col1, col2 = st.columns(2)
        with col1:
            send = st.form_submit_button("Send invitation", use_container_width=True)
        with col2:
            cancel = st.form_submit_button("Cancel", use_container_width=True)

    if send:
        ok, message = send_invite(user, workspace, email, role)
        if ok:
            st.session_state['view'] = 'home'
            _after_action(True, message)
        else:
            st.error(message)
    if cancel:
        st.session_state['view'] = 'home'
        st.rerun()


def _render_sent(user):
    ok, invites = load_invites(user, 'sent')
    if not ok:
        st.error(invites)
        return
    if not invites:
        st.info("You have not sent any invitations.")
        return

    for invite in invites:
        colour, label = get_status_badge_info(invite.get('status'))
        col1, col2, col3, col4 = st.columns([3, 1, 2, 1])
        col1.markdown(f"**{invite.get('toEmail')}**  \n{invite.get('resourceName', '')}")
        col2.markdown(f":{colour}[{label}]")
        col3.caption(format_date(invite.get('createdAt')))
        if invite.get('status') == PENDING:
            if col4.button("Cancel", key=f"cancel_{invite['id']}"):
                _run_action(invite['id'], 'cancel', user)


def _render_received(user):
    ok, invites = load_invites(user, 'received')
    if not ok:
        st.error(invites)
        return
    if not invites:
        st.info("No pending invitations.")
        return

    for invite in invites:
        col1, col2, col3, col4 = st.columns([3, 2, 1, 1])
        col1.markdown(f"**{invite.get('fromUserName') or 'User'}** invited you to "
                      f"**{invite.get('resourceName', '')}**  \n{format_date(invite.get('createdAt'))}")
        col2.markdown(format_permission(invite.get('role')))
        if col3.button("Accept", key=f"accept_{invite['id']}"):
            _run_action(invite['id'], 'accept', user)
        if col4.button("Decline", key=f"decline_{invite['id']}"):
            _run_action(invite['id'], 'decline', user)


def _render_access(user):
    ok, access_list = load_shared_access(user['uid'])
    if not ok:
        st.error(access_list)
        return
    if not access_list:
        st.info("No users have access to your workspaces.")
        return

    confirm_id = st.session_state.get('confirm_remove_access')
    for access in access_list:
        invite_id = access['id']
        col1, col2, col3, col4 = st.columns([3, 2, 1, 1])
        col1.markdown(f"**{access.get('toEmail')}**  \n{access.get('resourceName', '')}")
        current_role = access.get('role', DEFAULT_ROLE)
        new_role = col2.selectbox(
            "Permission", ROLES,
            index=ROLES.index(current_role) if current_role in ROLES else 0,
            format_func=format_permission,
            key=f"role_{invite_id}",
            label_visibility="collapsed",
        )
        # Save only appears once the permission was changed
        if new_role != current_role and col3.button("Save", key=f"save_{invite_id}"):
            _save_permission(invite_id, new_role, user)
        if col4.button("Remove", key=f"remove_{invite_id}"):
            st.session_state['confirm_remove_access'] = invite_id
            st.rerun()

        if confirm_id == invite_id:
            st.warning(f"Are you sure you want to remove access for {access.get('toEmail')}?")
            yes, no = st.columns(2)
            if yes.button("Yes, remove", key=f"confirm_{invite_id}", type="primary"):
                st.session_state.pop('confirm_remove_access', None)
                _run_action(invite_id, 'revoke', user)
            if no.button("Cancel", key=f"keep_{invite_id}"):
                st.session_state.pop('confirm_remove_access', None)
                st.rerun()


def render_manage_invitations(user, pending_count):
    st.subheader("Manage invitations")

    if 'invites_tab' not in st.session_state:
        st.session_state['invites_tab'] = 'sent'
    # Opening the manager with pending invitations jumps to the received tab
    if st.session_state.pop('invites_opened', False) and pending_count > 0:
        st.session_state['invites_tab'] = 'received'

    badge = badge_text(pending_count)
    st.radio(
        "Invitations",
        options=list(TABS.keys()),
        format_func=lambda key: f"{TABS[key]} ({badge})" if key == 'received' and badge else TABS[key],
        key='invites_tab',
        horizontal=True,
        label_visibility="collapsed",
    )

    tab = st.session_state['invites_tab']
    if tab == 'sent':
        _render_sent(user)
    elif tab == 'received':
        _render_received(user)
    else:
        _render_access(user)

    if st.button("Close"):
        st.session_state['view'] = 'home'
        st.rerun()
