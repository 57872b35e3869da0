import random
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

import redis
from flask import current_app


random_chars = '0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ'


def gibberish(length: int = 10) -> str:
    return "".join([random.choice(random_chars) for x in range(length)])


def utcnow(naive=True):
    if naive:
        return datetime.now(ZoneInfo('UTC')).replace(tzinfo=None)
    return datetime.now(ZoneInfo('UTC'))


def ap_datetime(date_time: datetime) -> str:
    return date_time.isoformat() + '+00:00'


def host_from_uri(uri) -> Optional[str]:
    """Lower-cased hostname of an http(s) URI, or None when there isn't one"""
    if not isinstance(uri, str) or uri == '':
        return None
    try:
        hostname = urlparse(uri.strip()).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def as_list(value) -> list:
    """Addressing fields may be a single string, a list or missing"""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def object_id(value) -> Optional[str]:
    """The identifier of an embedded object or a bare reference"""
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get('id'), str):
        return value['id']
    return None


def get_redis_connection(connection_string=None) -> redis.Redis:
    if connection_string is None:
        connection_string = current_app.config['REDIS_URL']
    return redis.from_url(connection_string, decode_responses=True)
