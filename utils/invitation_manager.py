"""
invitation_manager.py
Workspace sharing invitations stored in Firestore.

An invitation moves pending -> accepted | declined | canceled, and an accepted
invitation can later be revoked. Accepting or revoking also writes the
accessControl/{workspaceId} map ({userId: role}) in the same batch.
"""

from datetime import datetime, timedelta

from firebase_admin import firestore

from utils import firebase as firebase_utils
from utils.auth_manager import validate_email
from utils.config import (
    ACCESS_CONTROL_COLLECTION,
    INVITATIONS_COLLECTION,
    ROLE_LABELS,
    ROLES,
)
from utils.profile_manager import get_user_profile_data

PENDING = 'pending'
ACCEPTED = 'accepted'
DECLINED = 'declined'
CANCELED = 'canceled'
REVOKED = 'revoked'

_ACTION_RESULTS = {
    'accept': 'accepted',
    'decline': 'declined',
    'cancel': 'canceled',
    'revoke': 'revoked',
}

# status -> (badge colour, label)
STATUS_BADGES = {
    PENDING: ('orange', 'Pending'),
    ACCEPTED: ('green', 'Accepted'),
    DECLINED: ('red', 'Declined'),
    CANCELED: ('gray', 'Canceled'),
    REVOKED: ('gray', 'Revoked'),
}


class InvitationError(Exception):
    """An invitation action that is not allowed for this user or state"""


def _email(user):
    return (user.get('email') or '').lower()


def sender_display_name(sender):
    """Name shown to the invitee; falls back from the stored profile to the auth name"""
    profile = get_user_profile_data(sender.get('uid')) or {}
    return profile.get('displayName') or sender.get('display_name') or "Anonymous user"


def validate_invite_email(email, sender_email):
    """Normalize the invitee address; it must be valid and not the sender's own"""
    email = (email or '').strip().lower()
    ok, _ = validate_email(email)
    if not ok or email == (sender_email or '').lower():
        return False, "Please enter a valid email different from your own."
    return True, email


def send_invite(sender, workspace, email, role, sender_name=None):
    """Create a pending invitation to share `workspace` with `email`"""
    ok, result = validate_invite_email(email, sender.get('email'))
    if not ok:
        return False, result
    email = result

    if not workspace:
        return False, "No workspace selected to share."
    if not workspace.get('is_owner', True):
        return False, "Only the owner can share this workspace."
    if role not in ROLES:
        return False, f"Unknown permission: {role}"

    invite_data = {
        'fromUserId': sender['uid'],
        'fromUserName': sender_name or sender_display_name(sender),
        'toEmail': email,
        'resourceType': 'workspace',
        'resourceId': workspace['id'],
        'resourceName': workspace.get('name', ''),
        'role': role,
        'status': PENDING,
        'createdAt': firestore.SERVER_TIMESTAMP,
    }

    try:
        firebase_utils.db.collection(INVITATIONS_COLLECTION).add(invite_data)
        print(f"DEBUG: Invitation created for {email} on workspace {workspace['id']}")
        return True, f"An invitation was sent to {email}."
    except Exception as e:
        print(f"Error sending invitation: {e}")
        return False, "An error occurred while creating the invitation."


def _accept(batch, invite_ref, invite, user):
    if not user.get('uid'):
        raise InvitationError("You must be signed in to accept an invitation.")
    if invite.get('status') != PENDING:
        raise InvitationError("Only pending invitations can be accepted.")
    if not _email(user) or (invite.get('toEmail') or '').lower() != _email(user):
        raise InvitationError("You can only accept invitations addressed to you.")

    batch.update(invite_ref, {
        'status': ACCEPTED,
        'acceptedAt': firestore.SERVER_TIMESTAMP,
        'toUserId': user['uid'],
    })
    access_ref = firebase_utils.db.collection(ACCESS_CONTROL_COLLECTION).document(invite['resourceId'])
    batch.set(access_ref, {user['uid']: invite['role']}, merge=True)


def _decline(batch, invite_ref, invite, user):
    email = _email(user)
    addressed_to_user = (
        (email and (invite.get('toEmail') or '').lower() == email)
        or (invite.get('toUserId') and invite.get('toUserId') == user.get('uid'))
    )
    if not addressed_to_user:
        raise InvitationError("You can only decline invitations addressed to you.")
    if invite.get('status') != PENDING:
        raise InvitationError("Only pending invitations can be declined.")

    batch.update(invite_ref, {
        'status': DECLINED,
        'declinedByUserId': user.get('uid'),
    })


def _cancel(batch, invite_ref, invite, user):
    if invite.get('fromUserId') != user.get('uid'):
        raise InvitationError("Only the sender can cancel the invitation.")
    if invite.get('status') != PENDING:
        raise InvitationError("Only pending invitations can be canceled.")

    batch.update(invite_ref, {'status': CANCELED})


def _revoke(batch, invite_ref, invite, user):
    if invite.get('fromUserId') != user.get('uid'):
        raise InvitationError("Only the sender can remove access.")
    if invite.get('status') != ACCEPTED:
        raise InvitationError("Only accepted invitations can be revoked.")
    revoked_user_id = invite.get('toUserId')
    if not revoked_user_id:
        print(f"Warning: cannot revoke access, toUserId missing on invite {invite_ref.id}")
        raise InvitationError("Cannot revoke access: recipient information is missing.")

    batch.update(invite_ref, {'status': REVOKED})
    access_ref = firebase_utils.db.collection(ACCESS_CONTROL_COLLECTION).document(invite['resourceId'])
    batch.update(access_ref, {revoked_user_id: firestore.DELETE_FIELD})


_HANDLERS = {
    'accept': _accept,
    'decline': _decline,
    'cancel': _cancel,
    'revoke': _revoke,
}


def manage_invite(invite_id, action, user):
    """Accept, decline, cancel or revoke an invitation in one atomic batch"""
    try:
        handler = _HANDLERS.get(action)
        if handler is None:
            raise InvitationError(f"Unknown action: {action}")

        db = firebase_utils.db
        invite_ref = db.collection(INVITATIONS_COLLECTION).document(invite_id)
        snapshot = invite_ref.get()
        if not snapshot.exists:
            raise InvitationError("Invitation not found.")

        batch = db.batch()
        handler(batch, invite_ref, snapshot.to_dict(), user)
        batch.commit()
        return True, f"The invitation was {_ACTION_RESULTS[action]}."
    except InvitationError as e:
        return False, str(e)
    except Exception as e:
        print(f"Error running invitation action '{action}' on {invite_id}: {e}")
        return False, f"An error occurred while processing the invitation: {e}"


def update_user_permission(invite_id, new_role, user):
    """Change the role granted by an accepted invitation"""
    if new_role not in ROLES:
        return False, f"Unknown permission: {new_role}"
    try:
        db = firebase_utils.db
        invite_ref = db.collection(INVITATIONS_COLLECTION).document(invite_id)
        snapshot = invite_ref.get()
        if not snapshot.exists:
            return False, "Invitation not found."
        invite = snapshot.to_dict()

        if invite.get('fromUserId') != user.get('uid'):
            return False, "Only the owner of the workspace (the sender) can change permissions."
        if invite.get('status') != ACCEPTED:
            return False, "Permissions can only be changed on accepted invitations."
        invited_user_id = invite.get('toUserId')
        if not invited_user_id:
            return False, "The invited user id is missing on the invitation. The permission cannot be changed."

        batch = db.batch()
        batch.update(invite_ref, {'role': new_role})
        access_ref = db.collection(ACCESS_CONTROL_COLLECTION).document(invite['resourceId'])
        batch.update(access_ref, {invited_user_id: new_role})
        batch.commit()
        return True, "The user's permission was updated."
    except Exception as e:
        print(f"Error updating permission on {invite_id}: {e}")
        return False, "An error occurred while updating the permission."


def _to_list(query):
    return [{'id': doc.id, **doc.to_dict()} for doc in query.stream()]


def load_invites(user, kind):
    """Invitations the user sent, or pending invitations the user received"""
    uid = user.get('uid')
    email = _email(user)
    if not uid or not email:
        return True, []

    try:
        invitations = firebase_utils.db.collection(INVITATIONS_COLLECTION)
        if kind == 'sent':
            query = (invitations
                     .where('fromUserId', '==', uid)
                     .order_by('createdAt', direction=firestore.Query.DESCENDING))
        else:
            query = (invitations
                     .where('toEmail', '==', email)
                     .where('status', '==', PENDING)
                     .order_by('createdAt', direction=firestore.Query.DESCENDING))
        return True, _to_list(query)
    except Exception as e:
        print(f"Error loading {kind} invitations: {e}")
        label = 'sent' if kind == 'sent' else 'received'
        return False, f"An error occurred while loading {label} invitations."


def check_pending_invitations(email):
    """Number of pending invitations addressed to `email` (0 on error)"""
    email = (email or '').lower()
    if not email:
        print("Warning: user email not available for pending invitation check")
        return 0
    try:
        query = (firebase_utils.db.collection(INVITATIONS_COLLECTION)
                 .where('toEmail', '==', email)
                 .where('status', '==', PENDING))
        return sum(1 for _ in query.stream())
    except Exception as e:
        print(f"Error checking pending invitations: {e}")
        return 0


def load_shared_access(uid):
    """Accepted invitations sent by `uid`, most recently accepted first"""
    if not uid:
        return True, []
    try:
        query = (firebase_utils.db.collection(INVITATIONS_COLLECTION)
                 .where('fromUserId', '==', uid)
                 .where('status', '==', ACCEPTED)
                 .order_by('acceptedAt', direction=firestore.Query.DESCENDING))
        return True, _to_list(query)
    except Exception as e:
        print(f"Error loading shared access for {uid}: {e}")
        return False, "An error occurred while loading users with access."


def get_status_badge_info(status):
    return STATUS_BADGES.get(status, ('gray', 'Unknown'))


def format_permission(role):
    return ROLE_LABELS.get(role, role)


def badge_text(count):
    if not count:
        return ""
    return "9+" if count > 9 else str(count)


def _to_datetime(timestamp):
    if isinstance(timestamp, datetime):
        # Firestore returns UTC-aware datetimes
        return timestamp.astimezone() if timestamp.tzinfo else timestamp
    if isinstance(timestamp, (int, float)):
        return datetime.fromtimestamp(timestamp / 1000)
    return datetime.fromisoformat(str(timestamp).replace("Z", "+00:00")).astimezone()


def format_date(timestamp, now=None):
    """'Today, HH:MM', 'Yesterday, HH:MM' or DD/MM/YYYY"""
    if not timestamp:
        return "Unknown date"
    try:
        date = _to_datetime(timestamp)
    except (ValueError, TypeError, OverflowError):
        return "Unknown date"

    today = (now or datetime.now()).date()
    if date.date() == today:
        return f"Today, {date.strftime('%H:%M')}"
    if date.date() == today - timedelta(days=1):
        return f"Yesterday, {date.strftime('%H:%M')}"
    return date.strftime('%d/%m/%Y')
