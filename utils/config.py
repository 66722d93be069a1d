import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SECRETS_PATH = os.path.join(PROJECT_ROOT, ".streamlit", "secrets.toml")

# Firestore collections
USERS_COLLECTION = "users"
WORKSPACES_SUBCOLLECTION = "workspaces"
PREFERENCES_SUBCOLLECTION = "preferences"
INVITATIONS_COLLECTION = "invitations"
ACCESS_CONTROL_COLLECTION = "accessControl"

# Sharing roles, in the order they are offered in the UI
ROLE_LABELS = {
    "admin": "Administrator",
    "editor": "Editor",
    "viewer": "Viewer",
}
ROLES = list(ROLE_LABELS.keys())
DEFAULT_ROLE = "viewer"

MAX_AVATAR_BYTES = 2 * 1024 * 1024
AVATARS_PATH = "user-avatars"

SESSION_TIMEOUT_SECONDS = 7200

DEFAULT_WORKSPACE_NAME = "My Workspace"
DEFAULT_WORKSPACE_DESCRIPTION = "Main workspace"

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
HTTP_TIMEOUT = 10


def get_setting(name, section="firebase", default=""):
    """Look up a setting: secrets section -> flat secret -> env var -> default"""
    try:
        import streamlit as st
        if hasattr(st, 'secrets'):
            if section in st.secrets and name in st.secrets[section]:
                return str(st.secrets[section][name]).strip()
            if name.upper() in st.secrets:
                return str(st.secrets[name.upper()]).strip()
    except Exception:
        # No secrets file outside a configured Streamlit run
        pass
    return os.getenv(name.upper(), default).strip()


def get_web_api_key():
    return get_setting("web_api_key") or get_setting("firebase_web_api_key")


def get_storage_bucket():
    bucket = get_setting("storage_bucket")
    if bucket:
        return bucket
    project_id = get_setting("project_id")
    return f"{project_id}.appspot.com" if project_id else ""
