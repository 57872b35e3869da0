"""Ordered composition of MRF policies"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Sequence, Type

from fedmrf.federation.mrf import Policy, PolicyContext, PolicyDescriptor, get_policy_registry
from fedmrf.federation.mrf.config import MRFConfig
from fedmrf.federation.types import ActivityObject, ConfigurationError, PolicyRejection

logger = logging.getLogger(__name__)


class PolicyChain:
    """
    Runs policies in configured order.

    Each policy sees the output of the one before it. The first PolicyRejection stops the chain and
    no later policy runs. Conflicting rewrites are resolved by order alone.
    """

    def __init__(self, policies: Sequence[Policy], config: MRFConfig):
        self.policies = tuple(policies)
        self.config = config

    @classmethod
    def from_config(cls, config: MRFConfig, registry: Optional[Dict[str, Type[Policy]]] = None) -> 'PolicyChain':
        registry = get_policy_registry() if registry is None else registry
        policies = []
        for name in config.policies:
            policy_class = registry.get(name)
            if policy_class is None:
                logger.warning(str(ConfigurationError(f"Unknown MRF policy {name!r} in MRF_POLICIES, skipping")))
                continue
            policies.append(policy_class())
        return cls(policies, config)

    @property
    def names(self) -> List[str]:
        return [policy.name for policy in self.policies]

    def filter(self, activity: ActivityObject, context: Optional[PolicyContext] = None) -> ActivityObject:
        """
        Thread the activity through every policy.

        Returns:
            The rewritten activity. The caller's document is never modified.

        Raises:
            PolicyRejection: From the first policy that refuses the activity
        """
        if context is None:
            context = PolicyContext(config=self.config)
        result = copy.deepcopy(activity)
        for policy in self.policies:
            try:
                result = policy.filter(result, context)
            except PolicyRejection as rejection:
                if rejection.policy is None:
                    rejection.policy = policy.name
                logger.debug(f"{policy.name} rejected {_describe(activity)}: {rejection.reason}")
                raise
            if result is None:
                raise TypeError(f"{policy.name}.filter returned None")
            logger.debug(f"{policy.name} passed {_describe(activity)}")
        return result

    def id_filter(self, ap_id: str) -> bool:
        """True when every policy allows fetching `ap_id`"""
        for policy in self.policies:
            if not policy.id_filter(ap_id, self.config):
                logger.debug(f"{policy.name} refused id {ap_id}")
                return False
        return True

    def describe_all(self) -> List[PolicyDescriptor]:
        return [policy.descriptor(self.config) for policy in self.policies]

    def transparency_report(self) -> Dict[str, Any]:
        """The published shape of the MRF configuration. Empty when transparency is switched off."""
        if not self.config.transparency:
            return {}
        report: Dict[str, Any] = {
            'mrf_policies': self.names,
            'exclusions': bool(self.config.transparency_exclusions),
        }
        for descriptor in self.describe_all():
            report.update(descriptor.info)
        return report


def _describe(activity) -> str:
    if isinstance(activity, dict):
        return f"{activity.get('type')} {activity.get('id')}"
    return repr(activity)
