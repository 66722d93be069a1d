"""
fake_firestore.py
Stand-ins for Firestore snapshots used by the test modules.
"""

from unittest.mock import MagicMock


def make_snapshot(data=None, exists=True, doc_id=None):
    """Fake Firestore DocumentSnapshot"""
    snapshot = MagicMock()
    snapshot.exists = exists
    snapshot.id = doc_id
    snapshot.to_dict.return_value = data if exists else None
    return snapshot
