"""Side effects of a committed activity, by activity type

Handlers only stage changes on ``db.session``. The pipeline owns the single commit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from fedmrf import db
from fedmrf.constants import ACTOR_TYPES, AS_PUBLIC, VISIBILITY_DIRECT, VISIBILITY_PRIVATE, VISIBILITY_PUBLIC, \
    VISIBILITY_UNLISTED
from fedmrf.federation.profile import ProfileChangeset
from fedmrf.federation.store import find_user
from fedmrf.federation.types import ActivityObject, DuplicateActivity
from fedmrf.models import Activity, ActivityRecipient, StoredObject, User, UserFollower
from fedmrf.utils import ap_datetime, as_list, host_from_uri, object_id, utcnow

logger = logging.getLogger(__name__)


@dataclass
class CommitState:
    """Accumulates what the handlers did during one commit"""
    activity: ActivityObject
    local: bool = False
    changeset: Optional[ProfileChangeset] = None
    object_id: Optional[str] = None
    effects: List[str] = field(default_factory=list)
    local_changes: List[str] = field(default_factory=list)
    touched_objects: List[str] = field(default_factory=list)


SideEffectHandler = Callable[[ActivityObject, CommitState], None]

# Side effect registry
_side_effect_registry: Dict[str, SideEffectHandler] = {}


def register_side_effect(*activity_types: str):
    """Decorator to register side effect handlers"""
    def decorator(handler: SideEffectHandler) -> SideEffectHandler:
        for activity_type in activity_types:
            _side_effect_registry[activity_type] = handler
        return handler
    return decorator


def get_side_effect_registry() -> Dict[str, SideEffectHandler]:
    return _side_effect_registry


def visibility_of(activity: ActivityObject) -> str:
    to = as_list(activity.get('to'))
    cc = as_list(activity.get('cc'))
    if AS_PUBLIC in to:
        return VISIBILITY_PUBLIC
    if AS_PUBLIC in cc:
        return VISIBILITY_UNLISTED
    if any(isinstance(address, str) and address.endswith('/followers') for address in to + cc):
        return VISIBILITY_PRIVATE
    return VISIBILITY_DIRECT


def recipients_of(activity: ActivityObject) -> List[str]:
    recipients = []
    for key in ('to', 'cc', 'bto', 'bcc', 'audience'):
        for address in as_list(activity.get(key)):
            if isinstance(address, str) and address not in recipients:
                recipients.append(address)
    return recipients


def record_activity(activity: ActivityObject, local: bool) -> Activity:
    """Stage the Activity row and its recipient index"""
    record = Activity(ap_id=activity['id'], type=activity['type'], actor=activity.get('actor'),
                      object_ap_id=object_id(activity.get('object')) if not isinstance(activity.get('object'), list)
                      else None,
                      data=activity, local=local, visibility=visibility_of(activity))
    db.session.add(record)
    for recipient in recipients_of(activity):
        record.recipients.append(ActivityRecipient(recipient=recipient))
    return record


def apply_side_effects(activity: ActivityObject, state: CommitState) -> None:
    handler = _side_effect_registry.get(activity['type'])
    if handler is not None:
        handler(activity, state)


# Handlers

@register_side_effect('Create')
def create_object(activity: ActivityObject, state: CommitState):
    obj = activity['object']
    existing = db.session.query(StoredObject).filter_by(ap_id=obj['id']).first()
    if existing is not None:
        raise DuplicateActivity(f"Object {obj['id']} already exists")

    db.session.add(StoredObject(ap_id=obj['id'], type=obj.get('type', 'Note'),
                                actor=obj.get('attributedTo') or activity['actor'],
                                in_reply_to=obj.get('inReplyTo'), data=obj, activity_ap_id=activity['id']))
    state.object_id = obj['id']
    state.touched_objects.append(obj['id'])
    state.effects.append('object.created')


@register_side_effect('Update')
def update_object(activity: ActivityObject, state: CommitState):
    obj = activity['object']
    if not isinstance(obj, dict):
        state.effects.append('update.ignored')
        return
    state.object_id = obj.get('id')

    if obj.get('type') in ACTOR_TYPES:
        update_actor(activity, obj, state)
        return

    stored = db.session.query(StoredObject).filter_by(ap_id=obj.get('id'), deleted=False).first()
    if stored is None:
        state.effects.append('object.unknown')
        return
    if stored.actor != activity['actor']:
        logger.info(f"Ignoring Update of {stored.ap_id} by {activity['actor']}, not its author")
        state.effects.append('update.ignored')
        return
    data = dict(stored.data)
    data.update(obj)
    data['updated'] = obj.get('updated') or ap_datetime(utcnow())
    stored.data = data
    state.touched_objects.append(stored.ap_id)
    state.effects.append('object.updated')


def update_actor(activity: ActivityObject, document: Dict[str, Any], state: CommitState):
    if document.get('id') != activity['actor']:
        logger.info(f"Ignoring Update of actor {document.get('id')} by {activity['actor']}")
        state.effects.append('update.ignored')
        return

    user = find_user(document['id'])
    if user is not None and user.local:
        # federated fields and local-only settings land in this same commit
        if state.changeset is not None:
            state.local_changes.extend(state.changeset.apply(user))
        state.effects.append('actor.updated')
        return

    if user is None:
        user = User(user_name=document.get('preferredUsername') or document['id'].rstrip('/').split('/')[-1],
                    ap_profile_id=document['id'], ap_domain=host_from_uri(document['id']), local=False)
        db.session.add(user)
        state.effects.append('actor.created')
    else:
        state.effects.append('actor.updated')

    user.ap_followers_url = document.get('followers') or user.ap_followers_url
    user.ap_inbox_url = document.get('inbox') or user.ap_inbox_url
    user.ap_public_url = document.get('url') if isinstance(document.get('url'), str) else user.ap_public_url
    user.title = document.get('name')
    user.about = document.get('summary')
    user.actor_type = document.get('type', 'Person')
    user.locked = bool(document.get('manuallyApprovesFollowers'))
    user.discoverable = bool(document.get('discoverable', True))
    user.also_known_as = [alias for alias in as_list(document.get('alsoKnownAs')) if isinstance(alias, str)]
    user.fields = [{'name': entry.get('name', ''), 'value': entry.get('value', '')}
                   for entry in as_list(document.get('attachment'))
                   if isinstance(entry, dict) and entry.get('type') == 'PropertyValue']
    user.avatar = _remote_image(document.get('icon'))
    user.banner = _remote_image(document.get('image'))


def _remote_image(image) -> Optional[Dict[str, Any]]:
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, str):
        return {'url': image}
    if isinstance(image, dict) and isinstance(image.get('url'), str):
        result = {'url': image['url']}
        if image.get('name'):
            result['name'] = image['name']
        if image.get('mediaType'):
            result['mediaType'] = image['mediaType']
        return result
    return None


@register_side_effect('Delete')
def delete_object(activity: ActivityObject, state: CommitState):
    target = object_id(activity['object'])
    state.object_id = target

    if target == activity['actor']:
        user = find_user(target)
        if user is not None and not user.deleted:
            user.soft_delete()
            state.effects.append('actor.deleted')
            return

    stored = db.session.query(StoredObject).filter_by(ap_id=target).first()
    if stored is None or stored.deleted:
        state.effects.append('object.unknown')
        return
    if stored.actor != activity['actor']:
        logger.info(f"Ignoring Delete of {target} by {activity['actor']}, not its author")
        state.effects.append('delete.ignored')
        return
    stored.soft_delete()
    stored.data = {'id': target, 'type': 'Tombstone', 'formerType': stored.type,
                   'deleted': ap_datetime(stored.deleted_at)}
    state.touched_objects.append(target)
    state.effects.append('object.deleted')


@register_side_effect('Follow')
def record_follow(activity: ActivityObject, state: CommitState):
    follower = find_user(activity['actor'])
    followed = find_user(object_id(activity['object']))
    state.object_id = object_id(activity['object'])
    if follower is None or followed is None:
        state.effects.append('follow.unknown_actor')
        return
    existing = db.session.query(UserFollower).filter_by(follower_id=follower.id, followed_id=followed.id).first()
    if existing is None:
        db.session.add(UserFollower(follower_id=follower.id, followed_id=followed.id,
                                    follow_activity_id=activity['id']))
        state.effects.append('follow.recorded')
    else:
        state.effects.append('follow.exists')


@register_side_effect('Undo')
def undo_activity(activity: ActivityObject, state: CommitState):
    undone = activity['object']
    if isinstance(undone, str):
        record = db.session.query(Activity).filter_by(ap_id=undone).first()
        undone = record.data if record is not None else None
    state.object_id = object_id(activity['object'])

    if not isinstance(undone, dict) or undone.get('type') != 'Follow':
        state.effects.append('undo.recorded')
        return
    if undone.get('actor') != activity['actor']:
        state.effects.append('undo.ignored')
        return

    follower = find_user(activity['actor'])
    followed = find_user(object_id(undone.get('object')))
    if follower is None or followed is None:
        state.effects.append('follow.unknown_actor')
        return
    removed = db.session.query(UserFollower).filter_by(follower_id=follower.id, followed_id=followed.id).delete()
    state.effects.append('follow.removed' if removed else 'follow.absent')


@register_side_effect('Flag')
def record_report(activity: ActivityObject, state: CommitState):
    reported = activity['object']
    state.object_id = object_id(reported[0] if isinstance(reported, list) else reported)
    state.effects.append('report.recorded')


@register_side_effect('Like', 'Announce')
def record_interaction(activity: ActivityObject, state: CommitState):
    state.object_id = object_id(activity['object'])
    state.effects.append(f"{activity['type'].lower()}.recorded")
