"""Structural validation and normalization of incoming ActivityPub documents

Every recognised ``type`` is loaded through a marshmallow schema. Unknown but well-formed
types pass through unchanged so that newer vocabularies still federate.
"""
from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

from marshmallow import Schema, fields, validate as mm_validate, pre_load, validates_schema, INCLUDE
from marshmallow import ValidationError as MarshmallowValidationError

from fedmrf.constants import ACTOR_TYPES, ATTACHMENT_TYPES, DEFAULT_MEDIA_TYPE, MAX_ID_LENGTH, OBJECT_BEARING_TYPES
from fedmrf.federation.types import ValidationError

MIME_PATTERN = re.compile(r'^[\w.+-]+/[\w.+-]+(\s*;.*)?$')

OBJECT_TYPES = ('Note', 'Article', 'Page', 'Question', 'Answer', 'Event', 'ChatMessage', 'Tombstone',
                'Document', 'Image', 'Audio', 'Video')


@dataclass(frozen=True)
class ValidationResult:
    value: Optional[Dict[str, Any]] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Custom fields

class Uri(fields.String):
    """An absolute http(s) URI"""

    def _deserialize(self, value, attr, data, **kwargs):
        value = super()._deserialize(value, attr, data, **kwargs)
        parsed = urlparse(value)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise MarshmallowValidationError('Not a valid URI.')
        return value


class ApId(Uri):
    """An object or activity id, short enough to be stored"""

    def __init__(self, **kwargs):
        super().__init__(validate=mm_validate.Length(max=MAX_ID_LENGTH), **kwargs)


class MediaType(fields.String):
    """A MIME type. Malformed values fall back to application/octet-stream."""

    def _deserialize(self, value, attr, data, **kwargs):
        value = super()._deserialize(value, attr, data, **kwargs)
        return value if MIME_PATTERN.match(value) else DEFAULT_MEDIA_TYPE


class ActorRef(fields.Field):
    """`actor` and `attributedTo` may be an id, an embedded actor or a list of either. Normalized to the id."""

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, list):
            if not value:
                raise MarshmallowValidationError('Actor list is empty.')
            value = value[0]
        if isinstance(value, dict):
            value = value.get('id')
        if not isinstance(value, str):
            raise MarshmallowValidationError('Not a valid actor reference.')
        return ApId().deserialize(value, attr, data)


class AddressList(fields.Field):
    """`to` / `cc` may be a single address or a list. Normalized to a list of strings."""

    def _deserialize(self, value, attr, data, **kwargs):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return list(value)
        raise MarshmallowValidationError('Not a valid address list.')


class EmbeddedObject(fields.Field):
    """The `object` of an activity: an id, an embedded document or (for Flag) a list of those"""

    def __init__(self, embedded_only=False, allow_list=False, **kwargs):
        super().__init__(**kwargs)
        self.embedded_only = embedded_only
        self.allow_list = allow_list

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, list) and self.allow_list:
            if not value:
                raise MarshmallowValidationError('Object list is empty.')
            return [self._deserialize_one(item, attr, data) for item in value]
        return self._deserialize_one(value, attr, data)

    def _deserialize_one(self, value, attr, data):
        if isinstance(value, str):
            if self.embedded_only:
                raise MarshmallowValidationError('Must be an embedded object.')
            return ApId().deserialize(value, attr, data)
        if isinstance(value, dict):
            schema_class = schema_for(value.get('type'))
            if schema_class is None:
                if not isinstance(value.get('type'), str):
                    raise MarshmallowValidationError({'type': ['Missing data for required field.']})
                return copy.deepcopy(value)
            return schema_class().load(value)
        raise MarshmallowValidationError('Not a valid object.')


# Schemas

class DefaultSchema(Schema):
    class Meta:
        unknown = INCLUDE


def fix_media_type(data):
    if isinstance(data, dict) and not data.get('mediaType'):
        data = dict(data)
        data['mediaType'] = data.get('mimeType') or DEFAULT_MEDIA_TYPE
    return data


def drop_nulls(data, keys):
    return {key: value for key, value in data.items() if not (key in keys and value is None)}


def url_entry(href, media_type, data) -> Dict[str, Any]:
    entry = {'type': 'Link', 'href': href, 'mediaType': media_type}
    for dimension in ('width', 'height'):
        if data.get(dimension) is not None:
            entry[dimension] = data[dimension]
    return entry


class UrlObjectSchema(DefaultSchema):
    type = fields.String(load_default='Link', validate=mm_validate.Equal('Link'))
    href = Uri(required=True)
    mediaType = MediaType(required=True)
    width = fields.Integer(allow_none=True)
    height = fields.Integer(allow_none=True)

    @pre_load
    def fix_media_type(self, data, **kwargs):
        return fix_media_type(data)


class AttachmentSchema(DefaultSchema):
    id = fields.String()
    type = fields.String(load_default='Link', validate=mm_validate.OneOf(ATTACHMENT_TYPES))
    mediaType = MediaType(required=True)
    name = fields.String(allow_none=True)
    summary = fields.String(allow_none=True)
    blurhash = fields.String(allow_none=True)
    url = fields.List(fields.Nested(UrlObjectSchema), required=True, validate=mm_validate.Length(min=1))

    @pre_load
    def fix_url(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = fix_media_type(data)
        url = data.get('url')
        if isinstance(url, str):
            data = dict(data, url=[url_entry(url, data.get('mediaType'), data)])
        elif isinstance(url, dict):
            data = dict(data, url=[url])
        elif url is None and isinstance(data.get('href'), str):
            data = dict(data, url=[url_entry(data['href'], data.get('mediaType'), data)])
        return data


class ObjectSchema(DefaultSchema):
    id = ApId()
    type = fields.String(required=True)
    attributedTo = ActorRef()
    to = AddressList()
    cc = AddressList()
    content = fields.String(allow_none=True)
    summary = fields.String(allow_none=True)
    name = fields.String(allow_none=True)
    inReplyTo = fields.Method(deserialize='load_in_reply_to', allow_none=True)
    sensitive = fields.Boolean(allow_none=True)
    attachment = fields.List(fields.Nested(AttachmentSchema))
    tag = fields.List(fields.Raw())

    @pre_load
    def listify(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ('attachment', 'tag'):
            if isinstance(data.get(key), dict):
                data[key] = [data[key]]
        return drop_nulls(data, ('attachment', 'tag', 'to', 'cc'))

    def load_in_reply_to(self, value):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get('id')
        if not isinstance(value, str):
            raise MarshmallowValidationError('Not a valid reference.')
        return value


class ActorSchema(DefaultSchema):
    id = ApId(required=True)
    type = fields.String(required=True, validate=mm_validate.OneOf(ACTOR_TYPES))
    preferredUsername = fields.String()
    name = fields.String(allow_none=True)
    summary = fields.String(allow_none=True)
    inbox = Uri()
    outbox = Uri()
    followers = Uri()
    following = Uri()
    manuallyApprovesFollowers = fields.Boolean(allow_none=True)
    discoverable = fields.Boolean(allow_none=True)
    icon = fields.Raw(allow_none=True)
    image = fields.Raw(allow_none=True)


class ActivitySchema(DefaultSchema):
    id = ApId(required=True)
    type = fields.String(required=True)
    actor = ActorRef(required=True)
    to = AddressList(load_default=list)
    cc = AddressList(load_default=list)
    object = EmbeddedObject(required=True)

    @pre_load
    def drop_null_addressing(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        return drop_nulls(data, ('to', 'cc'))


class CreateSchema(ActivitySchema):
    object = EmbeddedObject(required=True, embedded_only=True)

    @validates_schema
    def object_has_id(self, data, **kwargs):
        if not isinstance(data.get('object', {}).get('id'), str):
            raise MarshmallowValidationError({'object': {'id': ['Missing data for required field.']}})


class FlagSchema(ActivitySchema):
    object = EmbeddedObject(required=True, allow_list=True)
    content = fields.String(allow_none=True)


SCHEMAS = {
    'Create': CreateSchema,
    'Flag': FlagSchema,
}
SCHEMAS.update({activity_type: ActivitySchema for activity_type in OBJECT_BEARING_TYPES
                if activity_type not in SCHEMAS})
SCHEMAS.update({actor_type: ActorSchema for actor_type in ACTOR_TYPES})
SCHEMAS.update({object_type: ObjectSchema for object_type in OBJECT_TYPES})


def schema_for(doc_type) -> Optional[type]:
    if not isinstance(doc_type, str):
        return None
    return SCHEMAS.get(doc_type)


def validate(raw) -> ValidationResult:
    """
    Validate and normalize one document. Never raises for malformed input.

    Known types are loaded through their schema. Documents of an unknown type only need a string `type`
    and are returned as a copy, unchanged.
    """
    if not isinstance(raw, Mapping):
        return ValidationResult(error=ValidationError('Document must be a JSON object',
                                                      {'_schema': ['Invalid input type.']}))
    doc_type = raw.get('type')
    if not isinstance(doc_type, str) or doc_type == '':
        return ValidationResult(error=ValidationError('Document has no type',
                                                      {'type': ['Missing data for required field.']}))

    schema_class = schema_for(doc_type)
    if schema_class is None:
        return ValidationResult(value=copy.deepcopy(dict(raw)))

    try:
        value = schema_class().load(copy.deepcopy(dict(raw)))
    except MarshmallowValidationError as e:
        messages = e.messages if isinstance(e.messages, dict) else {'_schema': e.messages}
        return ValidationResult(error=ValidationError(f'Invalid {doc_type}', messages))
    except RecursionError:
        return ValidationResult(error=ValidationError(f'Invalid {doc_type}', {'_schema': ['Nested too deeply.']}))
    return ValidationResult(value=value)
