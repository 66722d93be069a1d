"""
profile_manager.py
User profile (display name and avatar) in Firestore users/{uid},
with avatars uploaded to Cloud Storage and UI preferences kept in
users/{uid}/preferences/{key} as {value: ...}.
"""

import time
import uuid
from urllib.parse import quote

from firebase_admin import firestore

from utils import firebase as firebase_utils
from utils.config import AVATARS_PATH, MAX_AVATAR_BYTES, PREFERENCES_SUBCOLLECTION, USERS_COLLECTION


def default_avatar_url(name):
    return f"https://ui-avatars.com/api/?name={quote(name or '')}&background=random"


def get_user_profile_data(uid):
    """Profile document for `uid`; {} when missing, None without uid or on error"""
    if not uid:
        return None
    try:
        user_doc = firebase_utils.db.collection(USERS_COLLECTION).document(uid).get()
        return user_doc.to_dict() if user_doc.exists else {}
    except Exception as e:
        print(f"Error getting profile data for {uid}: {e}")
        return None


def load_user_profile(user):
    """Values shown in the profile editor and the sidebar.

    The stored profile wins over the values from the auth provider; if the
    profile cannot be read, only the auth values are used.
    """
    profile = get_user_profile_data(user.get('uid')) or {}

    display_name = profile.get('displayName') or user.get('display_name') or "User"
    photo_url = profile.get('photoURL') or user.get('photo_url') or default_avatar_url(display_name)
    return {
        'display_name': display_name,
        'email': user.get('email') or '',
        'photo_url': photo_url,
    }


def validate_avatar(content_type, size):
    if not content_type or not content_type.startswith('image/'):
        return False, "Invalid file. Please select an image."
    if size > MAX_AVATAR_BYTES:
        return False, "File too large. The maximum size is 2MB."
    return True, ""


def upload_avatar(uid, data, content_type):
    """Upload avatar bytes and return the Firebase download URL"""
    bucket = firebase_utils.bucket
    if bucket is None:
        raise RuntimeError("Storage bucket not configured")

    path = f"{AVATARS_PATH}/{uid}/avatar-{int(time.time() * 1000)}"
    token = str(uuid.uuid4())
    blob = bucket.blob(path)
    # Same token the client SDK's getDownloadURL() relies on
    blob.metadata = {'firebaseStorageDownloadTokens': token}
    blob.upload_from_string(data, content_type=content_type)

    return (f"https://firebasestorage.googleapis.com/v0/b/{bucket.name}/o/"
            f"{quote(path, safe='')}?alt=media&token={token}")


def save_user_profile(uid, nickname, avatar=None):
    """Save display name and, optionally, a new avatar.

    `avatar` is a (bytes, content_type) tuple. Returns (True, profile values)
    or (False, message).
    """
    if not uid:
        return False, "User is not authenticated."
    nickname = (nickname or '').strip()
    if not nickname:
        return False, "The nickname cannot be empty."

    update_data = {
        'displayName': nickname,
        'updatedAt': firestore.SERVER_TIMESTAMP,
    }

    if avatar:
        data, content_type = avatar
        is_valid, message = validate_avatar(content_type, len(data))
        if not is_valid:
            return False, message
        try:
            update_data['photoURL'] = upload_avatar(uid, data, content_type)
        except Exception as e:
            print(f"Error uploading avatar for {uid}: {e}")
            return False, "Could not upload the image."

    try:
        firebase_utils.db.collection(USERS_COLLECTION).document(uid).set(update_data, merge=True)
    except Exception as e:
        print(f"Error updating profile for {uid}: {e}")
        return False, "An error occurred while saving your profile."

    return True, {
        'display_name': nickname,
        'photo_url': update_data.get('photoURL'),
    }


def _preferences(uid):
    return (firebase_utils.db.collection(USERS_COLLECTION).document(uid)
            .collection(PREFERENCES_SUBCOLLECTION))


def load_user_preferences(uid):
    """All preferences of `uid` as {key: value}; {} without uid or on error"""
    if not uid:
        return {}
    try:
        preferences = {}
        for doc in _preferences(uid).stream():
            data = doc.to_dict() or {}
            preferences[doc.id] = data['value'] if 'value' in data else data
        return preferences
    except Exception as e:
        print(f"Error loading preferences for {uid}: {e}")
        return {}


def save_user_preference(uid, key, value):
    if not uid:
        return False, "User is not authenticated."
    try:
        _preferences(uid).document(key).set({'value': value})
        return True, ""
    except Exception as e:
        print(f"Error saving preference '{key}' for {uid}: {e}")
        return False, f"Could not save the preference '{key}'."


def get_user_preference(preferences, key, default=None):
    return (preferences or {}).get(key, default)
