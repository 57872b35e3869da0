"""
Shared pytest fixtures for all test files
"""
import pytest

from fedmrf.constants import AS_PUBLIC


class TestConfig:
    """Standard test configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}  # SQLite doesn't support pool settings
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SERVER_NAME = 'test.localhost'
    HTTP_PROTOCOL = 'https'
    SECRET_KEY = 'test-secret-key'
    CACHE_TYPE = 'NullCache'
    REDIS_URL = 'redis://localhost:6379/15'
    SENTRY_DSN = ''
    LOG_ACTIVITYPUB_TO_DB = True
    LOG_ACTIVITYPUB_TO_FILE = False
    MRF_POLICIES = ['SimplePolicy']
    MRF_SIMPLE = {}
    MRF_KEYWORD = {}
    MRF_TRANSPARENCY = True
    MRF_TRANSPARENCY_EXCLUSIONS = []
    REQUIRE_HTTPS_ACTIVITYPUB = True
    URI_BLOCKED_HOSTS = []
    FETCH_TIMEOUT = 5


@pytest.fixture
def test_app():
    """Create and configure a test application instance"""
    from fedmrf import create_app, db

    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app(test_app):
    """Alias for test_app for compatibility"""
    return test_app


@pytest.fixture
def local_user(app):
    from fedmrf import db
    from fedmrf.models import User

    user = User(user_name='alice', local=True, title='Alice', about='Hello')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def remote_user(app):
    from fedmrf import db
    from fedmrf.models import User

    user = User(user_name='bob', local=False, ap_profile_id='https://remote.example/users/bob',
                ap_followers_url='https://remote.example/users/bob/followers',
                ap_inbox_url='https://remote.example/users/bob/inbox', ap_domain='remote.example')
    db.session.add(user)
    db.session.commit()
    return user


def make_note(host='remote.example', number=1, **extra):
    note = {
        'id': f'https://{host}/objects/{number}',
        'type': 'Note',
        'attributedTo': f'https://{host}/users/bob',
        'content': 'Hello world',
        'to': [AS_PUBLIC],
        'cc': [f'https://{host}/users/bob/followers'],
    }
    note.update(extra)
    return note


def make_create(host='remote.example', number=1, **note_extra):
    return {
        '@context': 'https://www.w3.org/ns/activitystreams',
        'id': f'https://{host}/activities/create/{number}',
        'type': 'Create',
        'actor': f'https://{host}/users/bob',
        'to': [AS_PUBLIC],
        'cc': [f'https://{host}/users/bob/followers'],
        'object': make_note(host, number, **note_extra),
    }


ATTACHMENT = {
    'type': 'Document',
    'mediaType': 'image/png',
    'url': 'https://remote.example/media/cat.png',
    'name': 'A cat',
}
