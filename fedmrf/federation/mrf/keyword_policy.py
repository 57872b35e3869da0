"""Reject or rewrite posts containing configured keywords"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any, Dict, Optional

from fedmrf.constants import AS_PUBLIC
from fedmrf.federation.mrf import Policy, PolicyContext, register_policy
from fedmrf.federation.mrf.config import MRFConfig
from fedmrf.federation.types import ActivityObject, ConfigurationError, PolicyRejection

logger = logging.getLogger(__name__)

TEXT_FIELDS = ('content', 'summary', 'name')


def is_regex(pattern: str) -> bool:
    return len(pattern) > 2 and pattern.startswith('/') and pattern.endswith('/')


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Optional[re.Pattern]:
    """`/.../` is a regular expression, anything else a literal substring. Returns None when unusable."""
    if is_regex(pattern):
        try:
            return re.compile(pattern[1:-1])
        except re.error as e:
            logger.warning(str(ConfigurationError(f"Ignoring invalid MRF_KEYWORD regex {pattern!r}: {e}")))
            return None
    return re.compile(re.escape(pattern))


def matches(pattern: str, text: str) -> bool:
    compiled = compile_pattern(pattern)
    return compiled is not None and compiled.search(text) is not None


def object_text(obj: Dict[str, Any]) -> str:
    return '\n'.join(obj[field] for field in TEXT_FIELDS if isinstance(obj.get(field), str))


@register_policy('KeywordPolicy')
class KeywordPolicy(Policy):
    """Reject or Word-Replace messages with a keyword or regex"""
    config_key = 'MRF_KEYWORD'
    label = 'MRF Keyword'
    description = 'Reject or Word-Replace messages matching a keyword or /regex/'
    children = (
        {'key': 'reject', 'type': ['list', 'string'],
         'description': 'A list of patterns which result in the message being rejected'},
        {'key': 'federated_timeline_removal', 'type': ['list', 'string'],
         'description': 'A list of patterns which result in the message being removed from the federated timeline'},
        {'key': 'replace', 'type': ['list', 'tuple'],
         'description': 'A list of [pattern, replacement] pairs applied to the message text'},
    )

    def filter(self, activity: ActivityObject, context: PolicyContext) -> ActivityObject:
        if not isinstance(activity, dict) or activity.get('type') != 'Create':
            return activity
        obj = activity.get('object')
        if not isinstance(obj, dict):
            return activity

        rules = context.config.keyword
        text = object_text(obj)

        if any(matches(pattern, text) for pattern in rules.reject):
            raise PolicyRejection('[KeywordPolicy] Matches with rejected keyword', self.name)

        if any(matches(pattern, text) for pattern in rules.federated_timeline_removal):
            activity = self._demote_to_unlisted(activity)

        if rules.replace:
            replaced = dict(obj)
            for field in TEXT_FIELDS:
                if isinstance(replaced.get(field), str):
                    replaced[field] = self._replace(replaced[field], rules.replace)
            if replaced != obj:
                activity = dict(activity, object=replaced)

        return activity

    def describe(self, config: MRFConfig) -> Dict[str, Any]:
        rules = config.keyword
        return {'mrf_keyword': {
            'reject': list(rules.reject),
            'federated_timeline_removal': list(rules.federated_timeline_removal),
            'replace': [{'pattern': pattern, 'replacement': replacement} for pattern, replacement in rules.replace],
        }}

    @staticmethod
    def _demote_to_unlisted(activity):
        to = list(activity.get('to') or [])
        if AS_PUBLIC not in to:
            return activity
        cc = list(activity.get('cc') or [])
        to = [address for address in to if address != AS_PUBLIC]
        if AS_PUBLIC not in cc:
            cc.insert(0, AS_PUBLIC)
        return dict(activity, to=to, cc=cc)

    @staticmethod
    def _replace(text: str, replacements) -> str:
        for pattern, replacement in replacements:
            if not is_regex(pattern):
                text = text.replace(pattern, replacement)
                continue
            compiled = compile_pattern(pattern)
            if compiled is not None:
                text = compiled.sub(replacement, text)
        return text
