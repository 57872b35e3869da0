"""Message Rewrite Facility: pluggable policies that accept, rewrite or reject activities

A policy is a stateless class registered by name with :func:`register_policy`. ``MRF_POLICIES`` selects
which registered policies run and in what order (see :mod:`fedmrf.federation.mrf.chain`).
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from fedmrf.federation.mrf.config import MRFConfig
from fedmrf.federation.types import ActivityObject, FetchError, ObjectNotFound

logger = logging.getLogger(__name__)

# Policy registry
_policy_registry: Dict[str, Type['Policy']] = {}


def register_policy(name: str):
    """Decorator to register policies"""
    def decorator(policy_class: Type[Policy]) -> Type[Policy]:
        policy_class.name = name
        _policy_registry[name] = policy_class
        return policy_class
    return decorator


def get_policy_registry() -> Dict[str, Type[Policy]]:
    """Get the policy registry"""
    return _policy_registry


@dataclass(frozen=True)
class PolicyDescriptor:
    """Static metadata about a policy, for transparency reporting"""
    name: str
    config_key: Optional[str] = None
    label: str = ''
    description: str = ''
    children: Tuple[Mapping[str, Any], ...] = ()
    info: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PolicyContext:
    """Read-only view handed to every policy: the configuration snapshot and object lookups"""
    config: MRFConfig
    store: Optional[Any] = None

    def get_object(self, ap_id, fetch: bool = False) -> Optional[Dict[str, Any]]:
        """Look up a referenced object. Not-found and fetch failures both come back as None."""
        if self.store is None or not isinstance(ap_id, str):
            return None
        try:
            return self.store.get_object(ap_id, fetch=fetch)
        except (ObjectNotFound, FetchError) as e:
            logger.debug(f"Lookup of {ap_id} failed: {e}")
            return None

    def get_actor(self, ap_id) -> Optional[Dict[str, Any]]:
        if self.store is None or not isinstance(ap_id, str):
            return None
        try:
            return self.store.get_actor(ap_id)
        except (ObjectNotFound, FetchError) as e:
            logger.debug(f"Actor lookup of {ap_id} failed: {e}")
            return None

    def followers_of(self, ap_id) -> List[str]:
        if self.store is None or not isinstance(ap_id, str):
            return []
        return self.store.followers_of(ap_id)


class Policy(ABC):
    """
    Base class for MRF policies.

    ``filter`` returns the (possibly rewritten) activity or raises ``PolicyRejection``. It must not
    mutate its argument, and must return the activity unchanged for shapes it does not handle.
    """
    name: str = ''
    config_key: Optional[str] = None
    label: str = ''
    description: str = ''
    children: Tuple[Mapping[str, Any], ...] = ()

    @abstractmethod
    def filter(self, activity: ActivityObject, context: PolicyContext) -> ActivityObject:
        pass

    def id_filter(self, ap_id: str, config: MRFConfig) -> bool:
        """Cheap check on an identifier before anything is fetched"""
        return True

    def describe(self, config: MRFConfig) -> Dict[str, Any]:
        return {}

    def descriptor(self, config: MRFConfig) -> PolicyDescriptor:
        return PolicyDescriptor(
            name=self.name,
            config_key=self.config_key,
            label=self.label or self.name,
            description=self.description or (self.__doc__ or '').strip().split('\n')[0],
            children=self.children,
            info=self.describe(config),
        )


# Register the built-in policies
from fedmrf.federation.mrf import simple_policy, ensure_re_prepended, keyword_policy  # noqa: E402,F401
