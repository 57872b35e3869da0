"""Local profile updates: changeset construction and the actor document it federates as

A profile update touches two kinds of data. Federated fields end up in the Update activity's
actor document. Local-only settings are applied in the same commit but never leave the server.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from fedmrf.constants import LOCAL_PROFILE_SETTINGS, VISIBILITY_DIRECT, VISIBILITY_PRIVATE, VISIBILITY_PUBLIC, \
    VISIBILITY_UNLISTED
from fedmrf.federation.mrf.config import MRFConfig
from fedmrf.federation.types import ValidationError

# actor types a local user may switch between
LOCAL_ACTOR_TYPES = ('Person', 'Service', 'Group')

TRUTHY = ('true', '1', 'on', 'yes')

ERROR_MESSAGES = {
    'name_too_long': 'Name is too long',
    'bio_too_long': 'Bio is too long',
    'avatar_description_too_long': 'Avatar description is too long',
    'header_description_too_long': 'Banner description is too long',
    'field_too_long': 'One or more field entries are too long',
    'too_many_fields': 'Too many field entries',
    'invalid_actor_type': 'Invalid request',
    'invalid_default_scope': 'Invalid request',
}


@dataclass(frozen=True)
class ProfileChangeset:
    """Attribute changes for one User, split by whether they federate"""
    federated: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    local: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __bool__(self):
        return bool(self.federated or self.local)

    def value(self, user, attribute: str):
        """The attribute as it will be once the changeset is applied"""
        if attribute in self.federated:
            return self.federated[attribute]
        if attribute in self.local:
            return self.local[attribute]
        return getattr(user, attribute)

    def apply(self, user) -> List[str]:
        """Set every changed attribute on `user`. Returns the attribute names, in a stable order."""
        changed = []
        for attribute, value in list(self.federated.items()) + list(self.local.items()):
            setattr(user, attribute, value)
            changed.append(attribute)
        return sorted(changed)


def truthy_param(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def _reject(reason: str, field_name: str):
    message = ERROR_MESSAGES[reason]
    raise ValidationError(message, {field_name: [message]}, reason=reason)


def _image_value(value, description: Optional[str], current: Optional[Dict[str, Any]]):
    # empty string resets
    if value == '':
        return None
    if isinstance(value, str):
        image = {'url': value}
    elif isinstance(value, Mapping) and isinstance(value.get('url'), str):
        image = dict(value)
    else:
        raise ValidationError('Invalid request', {'image': ['Not a valid image.']}, reason='invalid_image')
    if description is None and current:
        description = current.get('name')
    if description is not None:
        image['name'] = description
    return image


def _normalize_fields(raw) -> List[Dict[str, str]]:
    if isinstance(raw, Mapping):
        raw = [raw[key] for key in sorted(raw, key=lambda key: int(key) if str(key).isdigit() else str(key))]
    if not isinstance(raw, (list, tuple)):
        raise ValidationError('Invalid request', {'fields_attributes': ['Not a valid list.']}, reason='invalid_fields')
    result = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise ValidationError('Invalid request', {'fields_attributes': ['Not a valid field.']},
                                  reason='invalid_fields')
        name = entry.get('name') or ''
        value = entry.get('value') or ''
        if name == '':
            continue
        result.append({'name': str(name), 'value': str(value)})
    return result


def build_profile_changeset(user, params: Mapping[str, Any], config: MRFConfig) -> ProfileChangeset:
    """
    Validate `params` against the configured limits and split them into a changeset

    Raises:
        ValidationError: carrying one of the reason codes in ERROR_MESSAGES. Checks run in the order
            name, bio, avatar description, header description, fields.
    """
    params = {key: value for key, value in (params or {}).items() if value is not None}
    federated: Dict[str, Any] = {}
    local: Dict[str, Any] = {}

    if 'display_name' in params:
        name = str(params['display_name'])
        if len(name) > config.limit('USER_NAME_LENGTH', 100):
            _reject('name_too_long', 'name')
        federated['title'] = name

    if 'note' in params:
        bio = str(params['note'])
        if len(bio) > config.limit('USER_BIO_LENGTH', 5000):
            _reject('bio_too_long', 'bio')
        federated['about'] = bio

    description_limit = config.limit('MEDIA_DESCRIPTION_LENGTH', 5000)
    avatar_description = params.get('avatar_description')
    if avatar_description is not None and len(avatar_description) > description_limit:
        _reject('avatar_description_too_long', 'avatar_description')
    header_description = params.get('header_description')
    if header_description is not None and len(header_description) > description_limit:
        _reject('header_description_too_long', 'header_description')

    if 'fields_attributes' in params:
        fields = _normalize_fields(params['fields_attributes'])
        name_limit = config.limit('ACCOUNT_FIELD_NAME_LENGTH', 512)
        value_limit = config.limit('ACCOUNT_FIELD_VALUE_LENGTH', 2048)
        if any(len(entry['name']) > name_limit or len(entry['value']) > value_limit for entry in fields):
            _reject('field_too_long', 'fields')
        if len(fields) > config.limit('MAX_ACCOUNT_FIELDS', 10):
            _reject('too_many_fields', 'fields')
        federated['fields'] = fields

    if 'avatar' in params:
        federated['avatar'] = _image_value(params['avatar'], avatar_description, getattr(user, 'avatar', None))
    elif avatar_description is not None and getattr(user, 'avatar', None):
        federated['avatar'] = dict(user.avatar, name=avatar_description)

    if 'header' in params:
        federated['banner'] = _image_value(params['header'], header_description, getattr(user, 'banner', None))
    elif header_description is not None and getattr(user, 'banner', None):
        federated['banner'] = dict(user.banner, name=header_description)

    # actor_type wins over bot
    if 'bot' in params:
        federated['actor_type'] = 'Service' if truthy_param(params['bot']) else 'Person'
    if 'actor_type' in params:
        if params['actor_type'] not in LOCAL_ACTOR_TYPES:
            _reject('invalid_actor_type', 'actor_type')
        federated['actor_type'] = params['actor_type']

    if 'locked' in params:
        federated['locked'] = truthy_param(params['locked'])
    if 'discoverable' in params:
        federated['discoverable'] = truthy_param(params['discoverable'])
    if 'also_known_as' in params:
        aliases = params['also_known_as']
        if isinstance(aliases, str):
            aliases = [aliases]
        federated['also_known_as'] = [alias for alias in aliases if isinstance(alias, str)]

    for setting in LOCAL_PROFILE_SETTINGS:
        if setting == 'default_scope' or setting not in params:
            continue
        local[setting] = truthy_param(params[setting])

    default_scope = params.get('default_scope')
    if isinstance(params.get('source'), Mapping) and params['source'].get('privacy') is not None:
        default_scope = params['source']['privacy']
    if default_scope is not None:
        if default_scope not in (VISIBILITY_PUBLIC, VISIBILITY_UNLISTED, VISIBILITY_PRIVATE, VISIBILITY_DIRECT):
            _reject('invalid_default_scope', 'default_scope')
        local['default_scope'] = default_scope

    return ProfileChangeset(federated=MappingProxyType(federated), local=MappingProxyType(local))


def _image_document(image: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not image:
        return None
    document = {'type': 'Image', 'url': image['url']}
    if image.get('mediaType'):
        document['mediaType'] = image['mediaType']
    if image.get('name'):
        document['name'] = image['name']
    return document


def render_actor(user, changeset: Optional[ProfileChangeset] = None) -> Dict[str, Any]:
    """The actor document for `user`, as it will look once `changeset` is applied. Local settings never appear."""
    changeset = changeset or ProfileChangeset()
    profile_id = user.profile_id()
    actor = {
        'id': profile_id,
        'type': changeset.value(user, 'actor_type') or 'Person',
        'preferredUsername': user.user_name,
        'name': changeset.value(user, 'title') or user.user_name,
        'summary': changeset.value(user, 'about') or '',
        'url': user.public_url(),
        'inbox': user.inbox_url(),
        'outbox': profile_id + '/outbox',
        'followers': user.followers_url(),
        'following': profile_id + '/following',
        'manuallyApprovesFollowers': bool(changeset.value(user, 'locked')),
        'discoverable': bool(changeset.value(user, 'discoverable')),
        'attachment': [{'type': 'PropertyValue', 'name': entry['name'], 'value': entry['value']}
                       for entry in changeset.value(user, 'fields') or []],
        'alsoKnownAs': list(changeset.value(user, 'also_known_as') or []),
    }
    icon = _image_document(changeset.value(user, 'avatar'))
    if icon:
        actor['icon'] = icon
    image = _image_document(changeset.value(user, 'banner'))
    if image:
        actor['image'] = image
    return actor
