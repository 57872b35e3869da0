"""Instance rule lists and the shared host matcher used by every list-based policy

Accepted pattern forms are an exact host (``example.org``) or a wildcard subdomain (``*.example.org``,
which also matches ``example.org`` itself). Matching is case-insensitive.

A malformed entry is logged and dropped. Dropped entries never match anything, so a broken accept
rule never accepts and a broken reject rule never rejects. Note the consequence for accept lists:
a list whose every entry is malformed is empty after parsing, and an empty accept list accepts all hosts.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import Iterable, List, Optional, Tuple

from fedmrf.federation.types import ConfigurationError, HostPattern, RuleEntry

logger = logging.getLogger(__name__)

HOST_LABEL = re.compile(r'^[a-z0-9_]([a-z0-9\-_]{0,61}[a-z0-9_])?$')


def normalize_host(host) -> Optional[str]:
    if not isinstance(host, str):
        return None
    host = host.strip().lower().rstrip('.')
    return host or None


def parse_pattern(pattern) -> HostPattern:
    """Normalize one configured pattern, raising ConfigurationError when it is not a host or wildcard"""
    if not isinstance(pattern, str):
        raise ConfigurationError(f"host pattern must be a string, got {type(pattern).__name__}")
    normalized = normalize_host(pattern)
    if normalized is None:
        raise ConfigurationError("empty host pattern")
    domain = normalized[2:] if normalized.startswith('*.') else normalized
    labels = domain.split('.')
    if not all(HOST_LABEL.match(label) for label in labels):
        raise ConfigurationError(f"invalid host pattern {pattern!r}")
    return normalized


class HostMatcher:
    """Matches candidate hosts against a set of exact and wildcard patterns"""

    def __init__(self, patterns: Iterable[HostPattern]):
        self.exact = set()
        self.suffixes = set()
        for pattern in patterns:
            if pattern.startswith('*.'):
                self.suffixes.add(pattern[2:])
            else:
                self.exact.add(pattern)

    def __bool__(self):
        return bool(self.exact or self.suffixes)

    def matches(self, host) -> bool:
        host = normalize_host(host)
        if host is None:
            return False
        if host in self.exact:
            return True
        for suffix in self.suffixes:
            if host == suffix or host.endswith('.' + suffix):
                return True
        return False


@dataclass(frozen=True)
class InstanceRuleList:
    """An ordered, immutable list of (host pattern, reason) rules"""
    entries: Tuple[RuleEntry, ...] = ()
    name: str = ''
    malformed: Tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def from_config(cls, value, name: str = '') -> 'InstanceRuleList':
        """
        Build a rule list from configuration. Accepted shapes:

        - a list of ``[host, reason]`` pairs
        - a list of bare host strings (empty reason)
        - a ``{host: reason}`` mapping
        """
        if value is None:
            return cls(name=name)

        if isinstance(value, dict):
            raw_entries = list(value.items())
        elif isinstance(value, (list, tuple)):
            raw_entries = list(value)
        else:
            error = ConfigurationError(f"rule list {name or '?'} must be a list or mapping")
            logger.warning(str(error))
            return cls(name=name, malformed=(str(error),))

        entries: List[RuleEntry] = []
        malformed: List[str] = []
        for raw in raw_entries:
            try:
                entries.append(cls._parse_entry(raw))
            except ConfigurationError as e:
                logger.warning(f"Ignoring malformed entry in {name or 'rule list'}: {e}")
                malformed.append(str(e))
        return cls(entries=tuple(entries), name=name, malformed=tuple(malformed))

    @staticmethod
    def _parse_entry(raw) -> RuleEntry:
        if isinstance(raw, str):
            return parse_pattern(raw), ''
        if isinstance(raw, (list, tuple)) and len(raw) == 2:
            host, reason = raw
            if reason is None:
                reason = ''
            if not isinstance(reason, str):
                raise ConfigurationError(f"reason for {host!r} must be a string")
            return parse_pattern(host), reason
        raise ConfigurationError(f"unrecognised rule entry {raw!r}")

    def __bool__(self):
        return bool(self.entries)

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @cached_property
    def matcher(self) -> HostMatcher:
        return HostMatcher(pattern for pattern, _ in self.entries)

    def matches(self, host) -> bool:
        return self.matcher.matches(host)

    def hosts(self) -> List[HostPattern]:
        return [pattern for pattern, _ in self.entries]

    def reason_for(self, host) -> Optional[str]:
        for pattern, reason in self.entries:
            if HostMatcher([pattern]).matches(host):
                return reason
        return None

    def excluding(self, exclusions: 'InstanceRuleList') -> 'InstanceRuleList':
        """Rules whose pattern is not listed in `exclusions`, as used for transparency reporting"""
        excluded = set(exclusions.hosts())
        return InstanceRuleList(entries=tuple(entry for entry in self.entries if entry[0] not in excluded),
                                name=self.name)
