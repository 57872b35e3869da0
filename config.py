import json
import os

from dotenv import load_dotenv


basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))


def _json_env(name, default):
    value = os.environ.get(name)
    if not value:
        return default
    return json.loads(value)


def _list_env(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return [item.strip() for item in value.split(',') if item.strip()]


class Config(object):
    SERVER_NAME = (os.environ.get('SERVER_NAME') or 'localhost').lower()
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guesss'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
                              'sqlite:///' + os.path.join(basedir, 'app.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False     # set to true to see SQL in console
    FULL_AP_CONTEXT = bool(int(os.environ.get('FULL_AP_CONTEXT', 0)))
    HTTP_PROTOCOL = os.environ.get('HTTP_PROTOCOL') or 'https'  # useful during development

    CACHE_TYPE = os.environ.get('CACHE_TYPE') or 'FileSystemCache'
    CACHE_REDIS_URL = os.environ.get('CACHE_REDIS_URL') or 'redis://localhost:6379/1'
    CACHE_DIR = os.environ.get('CACHE_DIR') or '/dev/shm/fedmrf'
    CACHE_DEFAULT_TIMEOUT = 300
    CACHE_THRESHOLD = 1000
    CACHE_KEY_PREFIX = 'fedmrf'
    REDIS_URL = os.environ.get('REDIS_URL') or 'redis://localhost:6379/0'

    DB_POOL_SIZE = os.environ.get('DB_POOL_SIZE') or 10
    DB_MAX_OVERFLOW = os.environ.get('DB_MAX_OVERFLOW') or 30

    LOG_ACTIVITYPUB_TO_DB = os.environ.get('LOG_ACTIVITYPUB_TO_DB') or False
    LOG_ACTIVITYPUB_TO_FILE = os.environ.get('LOG_ACTIVITYPUB_TO_FILE') or False
    LOG_DIR = os.environ.get('LOG_DIR') or 'logs'

    # Message Rewrite Facility
    MRF_POLICIES = _list_env('MRF_POLICIES', ['SimplePolicy'])
    MRF_SIMPLE = _json_env('MRF_SIMPLE', {})        # {"reject": [["bad.example", "spam"]], "media_removal": ["*.pics.example"]}
    MRF_KEYWORD = _json_env('MRF_KEYWORD', {})      # {"reject": ["/casino/"], "replace": [["foo", "bar"]]}
    MRF_TRANSPARENCY = os.environ.get('MRF_TRANSPARENCY', '1') in ('1', 'true', 'True')
    MRF_TRANSPARENCY_EXCLUSIONS = _json_env('MRF_TRANSPARENCY_EXCLUSIONS', [])

    # Profile limits for local Update activities
    USER_NAME_LENGTH = int(os.environ.get('USER_NAME_LENGTH') or 100)
    USER_BIO_LENGTH = int(os.environ.get('USER_BIO_LENGTH') or 5000)
    MAX_ACCOUNT_FIELDS = int(os.environ.get('MAX_ACCOUNT_FIELDS') or 10)
    ACCOUNT_FIELD_NAME_LENGTH = int(os.environ.get('ACCOUNT_FIELD_NAME_LENGTH') or 512)
    ACCOUNT_FIELD_VALUE_LENGTH = int(os.environ.get('ACCOUNT_FIELD_VALUE_LENGTH') or 2048)
    MEDIA_DESCRIPTION_LENGTH = int(os.environ.get('MEDIA_DESCRIPTION_LENGTH') or 5000)

    # Inbound JSON limits
    MAX_JSON_SIZE = int(os.environ.get('MAX_JSON_SIZE') or 1_000_000)
    MAX_JSON_DEPTH = int(os.environ.get('MAX_JSON_DEPTH') or 50)
    MAX_JSON_KEYS = int(os.environ.get('MAX_JSON_KEYS') or 1000)
    MAX_JSON_ARRAY_LENGTH = int(os.environ.get('MAX_JSON_ARRAY_LENGTH') or 10000)

    # Remote object fetching
    FETCH_TIMEOUT = float(os.environ.get('FETCH_TIMEOUT') or 10.0)
    REQUIRE_HTTPS_ACTIVITYPUB = os.environ.get('REQUIRE_HTTPS_ACTIVITYPUB', '1') in ('1', 'true', 'True')
    URI_BLOCKED_HOSTS = _list_env('URI_BLOCKED_HOSTS', [])

    SQLALCHEMY_ENGINE_OPTIONS = {} if SQLALCHEMY_DATABASE_URI.startswith('sqlite') else \
        {'pool_size': int(DB_POOL_SIZE), 'max_overflow': int(DB_MAX_OVERFLOW), 'pool_recycle': 3600}

    SENTRY_DSN = os.environ.get('SENTRY_DSN') or None
