from unittest.mock import MagicMock, patch

import pytest

from utils import firebase as firebase_utils


@pytest.fixture
def mock_db():
    """Firestore client mock; each collection name gets its own mock"""
    db = MagicMock()
    collections = {}

    def collection(name):
        return collections.setdefault(name, MagicMock(name=name))

    db.collection.side_effect = collection
    with patch.object(firebase_utils, 'db', db):
        yield db
