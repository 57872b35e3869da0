"""Immutable snapshot of the MRF configuration, taken once per pipeline invocation"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Tuple

from fedmrf.federation.mrf.hosts import InstanceRuleList, normalize_host
from fedmrf.federation.types import ConfigurationError

logger = logging.getLogger(__name__)

SIMPLE_RULE_KEYS = ('accept', 'reject', 'media_removal', 'media_nsfw', 'federated_timeline_removal',
                    'followers_only', 'report_removal', 'avatar_removal', 'banner_removal', 'reject_deletes')

PROFILE_LIMIT_KEYS = ('USER_NAME_LENGTH', 'USER_BIO_LENGTH', 'MAX_ACCOUNT_FIELDS', 'ACCOUNT_FIELD_NAME_LENGTH',
                      'ACCOUNT_FIELD_VALUE_LENGTH', 'MEDIA_DESCRIPTION_LENGTH')


@dataclass(frozen=True)
class KeywordRules:
    reject: Tuple[str, ...] = ()
    federated_timeline_removal: Tuple[str, ...] = ()
    replace: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_config(cls, value) -> 'KeywordRules':
        if not value:
            return cls()
        if not isinstance(value, Mapping):
            logger.warning(str(ConfigurationError('MRF_KEYWORD must be a mapping')))
            return cls()

        def patterns(key):
            result = []
            for pattern in value.get(key) or []:
                if isinstance(pattern, str) and pattern:
                    result.append(pattern)
                else:
                    logger.warning(str(ConfigurationError(f'Ignoring malformed MRF_KEYWORD {key} pattern {pattern!r}')))
            return tuple(result)

        replace = []
        for entry in value.get('replace') or []:
            if isinstance(entry, (list, tuple)) and len(entry) == 2 and all(isinstance(part, str) for part in entry) \
                    and entry[0]:
                replace.append((entry[0], entry[1]))
            else:
                logger.warning(str(ConfigurationError(f'Ignoring malformed MRF_KEYWORD replace entry {entry!r}')))

        return cls(reject=patterns('reject'),
                   federated_timeline_removal=patterns('federated_timeline_removal'),
                   replace=tuple(replace))


@dataclass(frozen=True)
class MRFConfig:
    """What policies are allowed to see of the application configuration"""
    server_name: str = 'localhost'
    protocol: str = 'https'
    policies: Tuple[str, ...] = ()
    simple: Mapping[str, InstanceRuleList] = field(default_factory=lambda: MappingProxyType({}))
    keyword: KeywordRules = field(default_factory=KeywordRules)
    transparency: bool = True
    transparency_exclusions: InstanceRuleList = field(default_factory=InstanceRuleList)
    limits: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_app_config(cls, config: Mapping[str, Any]) -> 'MRFConfig':
        simple_config = config.get('MRF_SIMPLE') or {}
        if not isinstance(simple_config, Mapping):
            logger.warning(str(ConfigurationError('MRF_SIMPLE must be a mapping')))
            simple_config = {}

        simple = {}
        for key, value in simple_config.items():
            if key not in SIMPLE_RULE_KEYS:
                logger.warning(str(ConfigurationError(f'Ignoring unknown MRF_SIMPLE rule {key!r}')))
                continue
            simple[key] = InstanceRuleList.from_config(value, name=key)
        for key in SIMPLE_RULE_KEYS:
            simple.setdefault(key, InstanceRuleList(name=key))

        policies = config.get('MRF_POLICIES') or ()
        if isinstance(policies, str):
            policies = [name.strip() for name in policies.split(',') if name.strip()]

        return cls(
            server_name=(normalize_host(config.get('SERVER_NAME')) or 'localhost').split(':')[0],
            protocol=config.get('HTTP_PROTOCOL') or 'https',
            policies=tuple(policies),
            simple=MappingProxyType(simple),
            keyword=KeywordRules.from_config(config.get('MRF_KEYWORD')),
            transparency=bool(config.get('MRF_TRANSPARENCY', True)),
            transparency_exclusions=InstanceRuleList.from_config(config.get('MRF_TRANSPARENCY_EXCLUSIONS'),
                                                                 name='transparency_exclusions'),
            limits=MappingProxyType({key: int(config[key]) for key in PROFILE_LIMIT_KEYS if key in config}),
        )

    def rules(self, key: str) -> InstanceRuleList:
        return self.simple.get(key) or InstanceRuleList(name=key)

    def limit(self, key: str, default: int) -> int:
        return self.limits.get(key, default)
