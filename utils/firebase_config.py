"""
OAuth client configuration for Google Sign-In
Loads configuration from Streamlit secrets (env vars as fallback)
"""

from utils.config import get_setting

# OAuth client used for the Google redirect flow
GOOGLE_OAUTH = {
    "client_id": get_setting("google_client_id"),
    "client_secret": get_setting("google_client_secret"),
    "redirect_uri": get_setting("redirect_uri", default="http://localhost:8501"),
}
