"""
workspace_manager.py
Workspaces owned by a user (users/{uid}/workspaces) and workspaces shared
with them through accepted invitations.
"""

from firebase_admin import firestore

from utils import firebase as firebase_utils
from utils.config import (
    ACCESS_CONTROL_COLLECTION,
    DEFAULT_WORKSPACE_DESCRIPTION,
    DEFAULT_WORKSPACE_NAME,
    INVITATIONS_COLLECTION,
    USERS_COLLECTION,
    WORKSPACES_SUBCOLLECTION,
)


def _workspaces(uid):
    return (firebase_utils.db.collection(USERS_COLLECTION)
            .document(uid)
            .collection(WORKSPACES_SUBCOLLECTION))


def create_workspace(uid, name, description=""):
    """Create a workspace owned by `uid`"""
    if not uid:
        return False, "User is not authenticated."
    name = (name or "").strip()
    if not name:
        return False, "Workspace name is required."

    workspace_data = {
        'name': name,
        'description': description,
        'ownerId': uid,
        'createdAt': firestore.SERVER_TIMESTAMP,
        'updatedAt': firestore.SERVER_TIMESTAMP,
    }
    try:
        _, doc_ref = _workspaces(uid).add(workspace_data)
        print(f"DEBUG: Workspace {doc_ref.id} created for {uid}")
        return True, {
            'id': doc_ref.id,
            'name': name,
            'description': description,
            'owner_id': uid,
            'is_owner': True,
        }
    except Exception as e:
        print(f"Error creating workspace: {e}")
        return False, "An error occurred while creating the workspace."


def load_user_workspaces(uid):
    """The user's own workspaces; creates the default one if there are none"""
    if not uid:
        return []
    try:
        workspaces = []
        for doc in _workspaces(uid).stream():
            data = doc.to_dict()
            workspaces.append({
                'id': doc.id,
                'name': data.get('name', ''),
                'description': data.get('description', ''),
                'owner_id': data.get('ownerId', uid),
                'is_owner': True,
            })
    except Exception as e:
        print(f"Error loading workspaces for {uid}: {e}")
        return []

    if not workspaces:
        print(f"DEBUG: No workspaces for {uid}, creating default")
        ok, workspace = create_workspace(uid, DEFAULT_WORKSPACE_NAME, DEFAULT_WORKSPACE_DESCRIPTION)
        if ok:
            workspaces.append(workspace)
    return workspaces


def get_user_role(workspace_id, uid):
    """Role granted to `uid` in accessControl/{workspace_id}, or None"""
    access_doc = firebase_utils.db.collection(ACCESS_CONTROL_COLLECTION).document(workspace_id).get()
    if not access_doc.exists:
        return None
    return access_doc.to_dict().get(uid)


def _owner_name(invite, owner_id):
    if invite.get('fromUserName'):
        return invite['fromUserName']
    try:
        owner_doc = firebase_utils.db.collection(USERS_COLLECTION).document(owner_id).get()
        if owner_doc.exists and owner_doc.to_dict().get('displayName'):
            return owner_doc.to_dict()['displayName']
    except Exception as e:
        print(f"Warning: could not fetch display name for {owner_id}: {e}")
    return owner_id


def _shared_workspace(invite, uid):
    workspace_id = invite.get('resourceId')
    owner_id = invite.get('fromUserId')
    if not workspace_id or not owner_id:
        print(f"Warning: skipping invitation without resourceId/fromUserId: {invite}")
        return None

    role = get_user_role(workspace_id, uid)
    if not role:
        # Access was revoked after the invitation was accepted
        return None

    workspace_doc = _workspaces(owner_id).document(workspace_id).get()
    if not workspace_doc.exists:
        print(f"Warning: shared workspace users/{owner_id}/workspaces/{workspace_id} not found")
        return None
    data = workspace_doc.to_dict()

    return {
        'id': workspace_id,
        'name': data.get('name', ''),
        'description': data.get('description', ''),
        'owner_id': owner_id,
        'owner_name': _owner_name(invite, owner_id),
        'role': role,
        'is_shared': True,
        'is_owner': False,
    }


def load_shared_workspaces(uid, email):
    """Workspaces shared with the user and still present in accessControl"""
    email = (email or '').lower()
    if not uid or not email:
        return []
    try:
        query = (firebase_utils.db.collection(INVITATIONS_COLLECTION)
                 .where('toEmail', '==', email)
                 .where('status', '==', 'accepted'))
        invites = [doc.to_dict() for doc in query.stream()]
    except Exception as e:
        print(f"Error loading shared workspaces for {uid}: {e}")
        return []

    shared = []
    for invite in invites:
        try:
            workspace = _shared_workspace(invite, uid)
        except Exception as e:
            print(f"Error processing shared workspace {invite.get('resourceId')}: {e}")
            continue
        if workspace:
            shared.append(workspace)
    return shared
