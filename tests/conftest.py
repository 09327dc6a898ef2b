"""Pytest configuration for shareable tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_SRC = Path(__file__).parent.parent / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from shareable import (
    FieldDefinition,
    FieldGroupDefinition,
    Shareable,
    ShareableSettings,
    ShareableUser,
)
from shareable.auth import StaticAuthProvider
from shareable.storage import InMemoryShareStorage

BASE_URL = 'https://app.example.com'

OWNER = ShareableUser(id='user_1', name='Ada Lovelace')


def profile_fields() -> dict:
    """Schema used across tests: two plain fields, one group, one dependency."""
    return {
        'bio': FieldDefinition(label='Bio', default=True),
        'earnings': FieldDefinition(label='Earnings', default=False),
        'stats': FieldGroupDefinition(label='Stats', children={
            'views': FieldDefinition(label='Views', default=True),
            'breakdown': FieldDefinition(
                label='Earnings Breakdown', default=True, requires='earnings',
            ),
        }),
    }


def profile_data() -> dict:
    return {
        'bio': 'Mathematician',
        'earnings': 1200,
        'stats': {'views': 42, 'breakdown': {'q1': 600, 'q2': 600}},
    }


@pytest.fixture
def storage():
    return InMemoryShareStorage()


@pytest.fixture
def auth():
    return StaticAuthProvider(user=OWNER, names={OWNER.id: OWNER.name})


@pytest.fixture
def settings():
    return ShareableSettings(base_url=BASE_URL)


@pytest.fixture
def instance(settings, storage, auth):
    """Shareable with a 'profile' type whose data is ``profile_data()``."""
    shareable = Shareable(settings, storage=storage, auth=auth)

    async def get_data(owner_id, params):
        return profile_data()

    shareable.define('profile', fields=profile_fields(), get_data=get_data)
    return shareable
