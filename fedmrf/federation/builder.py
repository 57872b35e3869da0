"""Construction of outgoing activities from local actions"""
from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple

from flask import current_app

from fedmrf.constants import AS_PUBLIC, VISIBILITY_DIRECT, VISIBILITY_PRIVATE, VISIBILITY_PUBLIC, VISIBILITY_UNLISTED
from fedmrf.federation.types import ActivityObject, BuildError
from fedmrf.utils import ap_datetime, gibberish, host_from_uri, object_id, utcnow

VISIBILITIES = (VISIBILITY_PUBLIC, VISIBILITY_UNLISTED, VISIBILITY_PRIVATE, VISIBILITY_DIRECT)


class ActivityBuilder:
    """
    Builds well-formed activities. Every result has an ``id``, ``type``, ``actor``, ``to`` and ``cc``.

    The actor may be a User (anything with ``profile_id()`` and ``followers_url()``) or a mapping with
    ``id`` and ``followers``.
    """

    def __init__(self, server_name: str, protocol: str = 'https', full_context: bool = False):
        self.server_name = server_name
        self.protocol = protocol
        self.full_context = full_context

    @classmethod
    def from_app(cls) -> 'ActivityBuilder':
        return cls(current_app.config['SERVER_NAME'], current_app.config.get('HTTP_PROTOCOL', 'https'),
                   bool(current_app.config.get('FULL_AP_CONTEXT')))

    def default_context(self):
        context = [
            "https://www.w3.org/ns/activitystreams",
            "https://w3id.org/security/v1",
        ]
        if self.full_context:
            context.append({
                "litepub": "http://litepub.social/ns#",
                "sc": "http://schema.org/",
                "ChatMessage": "litepub:ChatMessage",
                "sensitive": "as:sensitive",
                "manuallyApprovesFollowers": "as:manuallyApprovesFollowers",
                "discoverable": "http://joinmastodon.org/ns#discoverable",
                "PropertyValue": "sc:PropertyValue",
                "value": "sc:value",
                "language": "sc:inLanguage",
            })
        return context

    def new_id(self, kind: str) -> str:
        return f"{self.protocol}://{self.server_name}/activities/{kind}/{gibberish(15)}"

    def new_object_id(self) -> str:
        return f"{self.protocol}://{self.server_name}/objects/{gibberish(15)}"

    def build(self, kind: str, actor, payload: Mapping[str, Any]) -> ActivityObject:
        """
        Build the activity for one local action kind.

        Raises:
            BuildError: unknown kind, unusable actor or a payload missing what the kind needs
        """
        method = getattr(self, f"build_{kind.lower()}", None) if isinstance(kind, str) else None
        if method is None:
            raise BuildError(f"Unknown activity kind: {kind!r}")
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise BuildError(f"{kind} payload must be a mapping")
        return method(actor, payload)

    # Activity kinds

    def build_create(self, actor, payload) -> ActivityObject:
        actor_id, followers = self._actor(actor)
        obj = payload.get('object')
        if not isinstance(obj, Mapping):
            raise BuildError("Create needs an embedded object")
        to, cc = self.addressing(payload.get('visibility', VISIBILITY_PUBLIC), followers, payload.get('mentions'))

        obj = dict(obj)
        obj.setdefault('id', self.new_object_id())
        obj.setdefault('type', 'Note')
        obj.setdefault('published', ap_datetime(utcnow()))
        obj['attributedTo'] = actor_id
        obj['to'] = to
        obj['cc'] = cc
        return self._activity('Create', actor_id, obj, to, cc, published=obj['published'])

    def build_update(self, actor, payload) -> ActivityObject:
        actor_id, followers = self._actor(actor)
        obj = payload.get('object')
        if not isinstance(obj, Mapping) or not isinstance(obj.get('id'), str):
            raise BuildError("Update needs an embedded object with an id")
        return self._activity('Update', actor_id, dict(obj), [AS_PUBLIC], [followers])

    def build_delete(self, actor, payload) -> ActivityObject:
        actor_id, followers = self._actor(actor)
        target = self._required_id(payload, 'Delete')
        return self._activity('Delete', actor_id, target, [AS_PUBLIC], [followers])

    def build_flag(self, actor, payload) -> ActivityObject:
        actor_id, _ = self._actor(actor)
        account = payload.get('account')
        if not isinstance(account, str) or host_from_uri(account) is None:
            raise BuildError("Flag needs the reported account's id")
        statuses = [object_id(status) for status in payload.get('statuses') or []]
        if None in statuses:
            raise BuildError("Flag statuses must be ids")
        to = [account] if payload.get('forward') else []
        return self._activity('Flag', actor_id, [account] + statuses, to, [],
                              content=payload.get('content') or '')

    def build_follow(self, actor, payload) -> ActivityObject:
        actor_id, _ = self._actor(actor)
        target = self._required_id(payload, 'Follow')
        if target == actor_id:
            raise BuildError("Cannot follow yourself")
        return self._activity('Follow', actor_id, target, [target], [])

    def build_announce(self, actor, payload) -> ActivityObject:
        actor_id, followers = self._actor(actor)
        target = self._required_id(payload, 'Announce')
        to = [followers]
        if isinstance(payload.get('object_actor'), str):
            to.append(payload['object_actor'])
        if payload.get('visibility', VISIBILITY_PUBLIC) == VISIBILITY_PUBLIC:
            return self._activity('Announce', actor_id, target, to, [AS_PUBLIC])
        return self._activity('Announce', actor_id, target, to, [])

    def build_like(self, actor, payload) -> ActivityObject:
        actor_id, followers = self._actor(actor)
        target = self._required_id(payload, 'Like')
        to = [followers]
        if isinstance(payload.get('object_actor'), str):
            to.append(payload['object_actor'])
        return self._activity('Like', actor_id, target, to, [AS_PUBLIC])

    def build_undo(self, actor, payload) -> ActivityObject:
        actor_id, followers = self._actor(actor)
        undone = payload.get('object')
        if isinstance(undone, Mapping):
            if undone.get('actor') != actor_id:
                raise BuildError("Can only undo your own activities")
            to = list(undone.get('to') or [])
            cc = list(undone.get('cc') or [])
            return self._activity('Undo', actor_id, dict(undone), to, cc)
        target = self._required_id(payload, 'Undo')
        return self._activity('Undo', actor_id, target, [AS_PUBLIC], [followers])

    # Helpers

    def addressing(self, visibility, followers: str, mentions=None) -> Tuple[List[str], List[str]]:
        """to/cc for a post of the given visibility"""
        mentions = [mention for mention in (mentions or []) if isinstance(mention, str)]
        if visibility not in VISIBILITIES:
            raise BuildError(f"Unknown visibility {visibility!r}")
        if visibility == VISIBILITY_PUBLIC:
            return [AS_PUBLIC], [followers] + mentions
        if visibility == VISIBILITY_UNLISTED:
            return [followers], [AS_PUBLIC] + mentions
        if visibility == VISIBILITY_PRIVATE:
            return [followers] + mentions, []
        if not mentions:
            raise BuildError("A direct message needs at least one recipient")
        return mentions, []

    def _activity(self, activity_type: str, actor_id: str, obj, to: List[str], cc: List[str],
                  **extra) -> ActivityObject:
        activity = {
            '@context': self.default_context(),
            'id': self.new_id(activity_type.lower()),
            'type': activity_type,
            'actor': actor_id,
            'object': obj,
            'to': to,
            'cc': cc,
        }
        activity.update(extra)
        return activity

    @staticmethod
    def _actor(actor) -> Tuple[str, str]:
        if hasattr(actor, 'profile_id') and hasattr(actor, 'followers_url'):
            actor_id, followers = actor.profile_id(), actor.followers_url()
        elif isinstance(actor, Mapping):
            actor_id = actor.get('id')
            followers = actor.get('followers') or (f"{actor_id}/followers" if isinstance(actor_id, str) else None)
        else:
            raise BuildError("Actor must be a User or an actor document")
        if not isinstance(actor_id, str) or host_from_uri(actor_id) is None:
            raise BuildError(f"Actor has no usable id: {actor_id!r}")
        return actor_id, followers

    @staticmethod
    def _required_id(payload, kind: str) -> str:
        target: Optional[str] = object_id(payload.get('object'))
        if target is None or host_from_uri(target) is None:
            raise BuildError(f"{kind} needs the id of its object")
        return target
