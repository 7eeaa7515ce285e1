from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from access_key_store import ACTIVE, AccessKey, NewAccessKey

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeKeyStore:
    """In-memory IAM user that applies every mutation it is asked for."""

    def __init__(self, keys=None, user_name='cicd-bot'):
        self.user_name = user_name
        self.keys = list(keys or [])
        self.calls = []
        self.counter = 0
        self.clock = max([k.created for k in self.keys], default=T0)

    def list_keys(self):
        return list(self.keys)

    def create_key(self):
        self.counter += 1
        self.clock += timedelta(hours=1)
        created = self.clock
        new_key = NewAccessKey(f'AKIANEW{self.counter}', f'secret-{self.counter}', created)
        self.keys.append(AccessKey(new_key.key_id, created, ACTIVE))
        self.calls.append(('create', new_key.key_id))
        return new_key

    def update_key_status(self, key_id, status):
        self.keys = [AccessKey(k.key_id, k.created, status) if k.key_id == key_id else k for k in self.keys]
        self.calls.append(('update', key_id, status))

    def delete_key(self, key_id):
        self.keys = [k for k in self.keys if k.key_id != key_id]
        self.calls.append(('delete', key_id))


@pytest.fixture
def key():
    def make(key_id, hours, status=ACTIVE):
        return AccessKey(key_id, T0 + timedelta(hours=hours), status)
    return make


@pytest.fixture
def pusher():
    return MagicMock()


@pytest.fixture
def no_sleep():
    return MagicMock()
