# utils/firebase.py
import os
import firebase_admin
from firebase_admin import credentials, firestore, auth, storage

from utils.config import SECRETS_PATH, get_storage_bucket

# Keys in the [firebase] section that are app settings, not service account fields
_NON_CREDENTIAL_KEYS = {
    'web_api_key', 'storage_bucket', 'oauth_state_secret',
    'google_client_id', 'google_client_secret', 'redirect_uri',
}


def _service_account(section):
    return {k: v for k, v in dict(section).items() if k not in _NON_CREDENTIAL_KEYS}


def initialize_firebase():
    """Initialize Firebase Admin SDK with credentials"""
    # First try loading from Streamlit secrets if available
    try:
        import streamlit as st
        if hasattr(st, 'secrets') and 'firebase' in st.secrets:
            print("DEBUG: Loading Firebase credentials from Streamlit secrets")
            return credentials.Certificate(_service_account(st.secrets['firebase']))
        else:
            print("DEBUG: No firebase in Streamlit secrets")
    except ImportError:
        print("DEBUG: Streamlit not available or not running in Streamlit")
    except Exception as e:
        print(f"DEBUG: Error loading from Streamlit secrets: {e}")

    # If not running in Streamlit, try local secrets file
    print(f"DEBUG: Checking for secrets.toml at {SECRETS_PATH}")
    if os.path.exists(SECRETS_PATH):
        import tomli

        with open(SECRETS_PATH, 'rb') as f:
            config = tomli.load(f)
        if 'firebase' not in config:
            raise RuntimeError("No [firebase] section found in secrets.toml")

        print("DEBUG: Loading Firebase credentials from secrets.toml")
        return credentials.Certificate(_service_account(config['firebase']))

    raise RuntimeError(
        "Firebase credentials not found. Either:\n"
        "1. Run in Streamlit with secrets configured, or\n"
        "2. Create .streamlit/secrets.toml with [firebase] section"
    )

# Initialize Firebase and create shared clients
try:
    cred = initialize_firebase()
    print("DEBUG: Credentials loaded successfully")

    if not firebase_admin._apps:
        options = {}
        bucket_name = get_storage_bucket()
        if bucket_name:
            options['storageBucket'] = bucket_name
        firebase_admin.initialize_app(cred, options)
        print("DEBUG: Firebase Admin SDK initialized")
    else:
        print("DEBUG: Firebase Admin SDK already initialized")

    # Export shared clients
    db = firestore.client()  # Firestore
    firebase_auth = auth     # Auth client
    try:
        bucket = storage.bucket()  # requires storageBucket in initialize_app
    except ValueError as e:
        print(f"Warning: Storage bucket unavailable, avatar upload disabled: {e}")
        bucket = None
    print("DEBUG: Firebase clients created successfully")
except Exception as e:
    print(f"ERROR: Firebase initialization failed: {type(e).__name__}: {e}")
    print("Some features may be unavailable.")
    db = None
    firebase_auth = None
    bucket = None
