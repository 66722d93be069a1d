import streamlit as st

from notifications import notify
from utils.invitation_manager import format_permission
from utils.profile_manager import get_user_preference, save_user_preference
from utils.workspace_manager import create_workspace, load_shared_workspaces, load_user_workspaces

TIPS = {
    "welcomeTipClosed": "Use the sidebar to switch workspaces or create a new one.",
    "sharingTipClosed": "Share a workspace with **Invite user** and follow the replies in **Manage invitations**.",
}


@st.cache_data(ttl=300)
def load_workspaces(uid, email):
    return load_user_workspaces(uid), load_shared_workspaces(uid, email)


def _workspace_label(workspace):
    if workspace.get('is_shared'):
        return f"{workspace['name']} (shared by {workspace['owner_name']})"
    return workspace['name']


def get_current_workspace():
    return st.session_state.get('current_workspace')


def render_workspace_selector(user):
    """Sidebar selector over own and shared workspaces"""
    own, shared = load_workspaces(user['uid'], (user.get('email') or '').lower())
    workspaces = own + shared
    if not workspaces:
        st.warning("No workspaces available")
        st.session_state['current_workspace'] = None
        return

    current = get_current_workspace()
    ids = [w['id'] for w in workspaces]
    # Fall back to the first workspace if the current one was deleted or revoked
    index = ids.index(current['id']) if current and current['id'] in ids else 0

    selected = st.selectbox(
        "Workspace",
        options=workspaces,
        index=index,
        format_func=_workspace_label,
    )
    st.session_state['current_workspace'] = selected

    with st.expander("New workspace"):
        with st.form("new_workspace_form", clear_on_submit=True):
            name = st.text_input("Workspace name", placeholder="e.g. Sales project, Finance...")
            if st.form_submit_button("Create", use_container_width=True):
                ok, result = create_workspace(user['uid'], name)
                if ok:
                    st.session_state['current_workspace'] = result
                    load_workspaces.clear()
                    notify(True, f'"{result["name"]}" was created.')
                    st.rerun()
                else:
                    st.error(result)

    if st.button("Refresh shared workspaces", use_container_width=True):
        load_workspaces.clear()
        st.rerun()


def render_workspace_overview(user):
    render_tips(user)
    workspace = get_current_workspace()
    if not workspace:
        st.info("Select or create a workspace to get started.")
        return

    st.title(workspace['name'])
    if workspace.get('description'):
        st.markdown(workspace['description'])

    if workspace.get('is_shared'):
        st.markdown(f"**Owner:** {workspace['owner_name']}")
        st.markdown(f"**Your permission:** {format_permission(workspace['role'])}")
    else:
        st.markdown("**Owner:** you")

    _, shared = load_workspaces(user['uid'], (user.get('email') or '').lower())
    st.divider()
    st.subheader("Shared with me")
    if not shared:
        st.caption("No workspaces have been shared with you yet.")
    for item in shared:
        col1, col2, col3 = st.columns([3, 2, 1])
        col1.markdown(f"**{item['name']}**")
        col2.markdown(item['owner_name'])
        col3.markdown(format_permission(item['role']))


def _close_tip(user, key):
    st.session_state['preferences'][key] = True
    ok, message = save_user_preference(user['uid'], key, True)
    if not ok:
        notify(False, message)
    st.rerun()


def reset_tips(user):
    """Show every tip again"""
    for key in TIPS:
        st.session_state['preferences'][key] = False
        ok, message = save_user_preference(user['uid'], key, False)
        if not ok:
            notify(False, message)
            break
    st.rerun()


def render_tips(user):
    preferences = st.session_state.setdefault('preferences', {})
    for key, text in TIPS.items():
        if get_user_preference(preferences, key, False):
            continue
        col1, col2 = st.columns([6, 1])
        col1.info(text, icon="💡")
        if col2.button("Got it", key=f"tip_{key}"):
            _close_tip(user, key)
