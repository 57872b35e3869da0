"""Object and actor lookups by identifier: stored first, remote fetch on request"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from flask import current_app
from sqlalchemy import func

from fedmrf import cache, db, httpx_client
from fedmrf.federation.types import FetchError, ObjectNotFound
from fedmrf.federation.validator import validate
from fedmrf.models import StoredObject, User
from fedmrf.security.json_validator import SafeJSONParser
from fedmrf.security.uri_validator import URIValidator
from fedmrf.utils import host_from_uri

logger = logging.getLogger(__name__)


@cache.memoize(timeout=300)
def stored_object_data(ap_id: str) -> Optional[Dict[str, Any]]:
    stored = db.session.query(StoredObject).filter_by(ap_id=ap_id, deleted=False).first()
    return dict(stored.data) if stored else None


def forget_stored_object(ap_id: str):
    cache.delete_memoized(stored_object_data, ap_id)


def find_user(ap_id: str) -> Optional[User]:
    """The User behind an actor id, whether it was stored with its id or is local and derives it"""
    if not isinstance(ap_id, str):
        return None
    user = db.session.query(User).filter_by(ap_profile_id=ap_id).first()
    if user is not None:
        return user
    if host_from_uri(ap_id) != current_app.config['SERVER_NAME'].split(':')[0].lower():
        return None
    prefix = f"{current_app.config['HTTP_PROTOCOL']}://{current_app.config['SERVER_NAME']}/u/"
    if not ap_id.startswith(prefix):
        return None
    user_name = ap_id[len(prefix):].strip('/')
    return db.session.query(User).filter(func.lower(User.user_name) == user_name.lower(),
                                         User.local == True).first()


class ObjectStore:
    """
    What policies and side effects may look up. Remote fetches are GETs and safe to retry.

    Args:
        chain: a PolicyChain whose id_filter gates every remote fetch
        client: httpx client used for fetches
    """

    def __init__(self, chain=None, client: Optional[httpx.Client] = None):
        self.chain = chain
        self.client = client if client is not None else httpx_client

    def get_object(self, ap_id: str, fetch: bool = False) -> Dict[str, Any]:
        """
        Raises:
            ObjectNotFound: not stored (and not fetched), or the remote end says it's gone
            FetchError: the remote fetch was refused or failed
        """
        data = stored_object_data(ap_id)
        if data is not None:
            return data
        if not fetch:
            raise ObjectNotFound(ap_id)
        return self.fetch(ap_id)

    def get_actor(self, ap_id: str) -> Dict[str, Any]:
        user = find_user(ap_id)
        if user is None or user.deleted:
            raise ObjectNotFound(ap_id)
        return {
            'id': user.profile_id(),
            'type': user.actor_type,
            'preferredUsername': user.user_name,
            'followers': user.followers_url(),
            'inbox': user.inbox_url(),
            'local': user.local,
        }

    def followers_of(self, ap_id: str) -> List[str]:
        user = find_user(ap_id)
        if user is None:
            return []
        return user.follower_ids()

    def fetch(self, ap_id: str) -> Dict[str, Any]:
        if self.chain is not None and not self.chain.id_filter(ap_id):
            raise FetchError(f"Fetching {ap_id} is refused by MRF")

        try:
            URIValidator().validate(ap_id)
        except ValueError as e:
            raise FetchError(f"Unsafe URI {ap_id}: {e}") from e

        headers = {
            'Accept': 'application/activity+json',
            'User-Agent': f'fedmrf; +https://{current_app.config["SERVER_NAME"]}',
        }
        try:
            response = self.client.get(ap_id, headers=headers, timeout=current_app.config.get('FETCH_TIMEOUT', 10),
                                       follow_redirects=False)
        except httpx.HTTPError as e:
            raise FetchError(f"Could not fetch {ap_id}: {e}") from e

        if response.status_code in (404, 410):
            raise ObjectNotFound(ap_id)
        if response.status_code != 200:
            raise FetchError(f"Fetching {ap_id} returned {response.status_code}")

        try:
            document = SafeJSONParser().parse(response.content)
        except ValueError as e:
            raise FetchError(f"Bad JSON from {ap_id}: {e}") from e

        result = validate(document)
        if not result.ok:
            raise FetchError(f"Invalid document from {ap_id}: {result.error.errors}")
        if host_from_uri(result.value.get('id')) != host_from_uri(ap_id):
            raise FetchError(f"Document from {ap_id} claims a different origin")
        return result.value
