"""Filter activities depending on their origin instance"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fedmrf.constants import ACTOR_TYPES, AS_PUBLIC
from fedmrf.federation.mrf import Policy, PolicyContext, register_policy
from fedmrf.federation.mrf.config import MRFConfig, SIMPLE_RULE_KEYS
from fedmrf.federation.types import ActivityObject, PolicyRejection
from fedmrf.utils import host_from_uri

logger = logging.getLogger(__name__)

RULE_DESCRIPTIONS = {
    'media_removal': 'List of instances to strip media attachments from and the reason for doing so',
    'media_nsfw': 'List of instances to tag all media as NSFW (sensitive) from and the reason for doing so',
    'federated_timeline_removal': 'List of instances to remove from the Federated (aka The Whole Known Network) '
                                  'Timeline and the reason for doing so',
    'reject': 'List of instances to reject activities from (except deletes) and the reason for doing so',
    'accept': 'List of instances to only accept activities from (except deletes) and the reason for doing so',
    'followers_only': 'Force posts from the given instances to be visible by followers only and the reason for '
                      'doing so',
    'report_removal': 'List of instances to reject reports from and the reason for doing so',
    'avatar_removal': 'List of instances to strip avatars from and the reason for doing so',
    'banner_removal': 'List of instances to strip banners from and the reason for doing so',
    'reject_deletes': 'List of instances to reject deletions from and the reason for doing so',
}


@register_policy('SimplePolicy')
class SimplePolicy(Policy):
    """Filter activities depending on their origin instance"""
    config_key = 'MRF_SIMPLE'
    label = 'MRF Simple'
    description = 'Simple ingress policies'
    children = tuple(
        {
            'key': key,
            'description': RULE_DESCRIPTIONS[key],
            'type': ['list', 'tuple'],
            'key_placeholder': 'instance',
            'value_placeholder': 'reason',
            'suggestions': [['example.com', 'Some reason'], ['*.example.com', 'Another reason']],
        }
        for key in SIMPLE_RULE_KEYS
    )

    def filter(self, activity: ActivityObject, context: PolicyContext) -> ActivityObject:
        config = context.config

        # a bare identifier, e.g. an Announce'd object that hasn't been fetched yet
        if isinstance(activity, str):
            self._check_accept(host_from_uri(activity), config)
            self._check_reject(host_from_uri(activity), config)
            return activity

        if not isinstance(activity, dict):
            return activity

        actor = activity.get('actor')
        if activity.get('type') == 'Delete' and isinstance(actor, str):
            if config.rules('reject_deletes').matches(host_from_uri(actor)):
                raise PolicyRejection('[SimplePolicy] host in reject_deletes list', self.name)
            return activity

        if isinstance(actor, str):
            host = host_from_uri(actor)
            self._check_accept(host, config)
            self._check_reject(host, config)
            activity = self._check_media_removal(host, activity, config)
            activity = self._check_media_nsfw(host, activity, config)
            activity = self._check_ftl_removal(host, activity, context)
            activity = self._check_followers_only(host, activity, context)
            self._check_report_removal(host, activity, config)
            return self._check_object(activity, context)

        if activity.get('type') in ACTOR_TYPES and isinstance(activity.get('id'), str):
            host = host_from_uri(activity['id'])
            self._check_accept(host, config)
            self._check_reject(host, config)
            activity = self._check_avatar_removal(host, activity, config)
            return self._check_banner_removal(host, activity, config)

        return activity

    def id_filter(self, ap_id: str, config: MRFConfig) -> bool:
        host = host_from_uri(ap_id)
        return self._accepted(host, config) and not config.rules('reject').matches(host)

    def describe(self, config: MRFConfig) -> Dict[str, Any]:
        excluded = {rule: config.rules(rule).excluding(config.transparency_exclusions) for rule in SIMPLE_RULE_KEYS}

        mrf_simple = {rule: rules.hosts() for rule, rules in excluded.items()}

        # reasons live in a separate key, mrf_simple stays a plain host list
        mrf_simple_info = {}
        for rule, rules in excluded.items():
            with_reason = {host: {'reason': reason} for host, reason in rules if reason != ''}
            if with_reason:
                mrf_simple_info[rule] = with_reason

        return {'mrf_simple': mrf_simple, 'mrf_simple_info': mrf_simple_info}

    # Individual checks

    @staticmethod
    def _accepted(host: Optional[str], config: MRFConfig) -> bool:
        accepts = config.rules('accept')
        if not accepts:
            return True
        if host is not None and host == config.server_name:
            return True
        return accepts.matches(host)

    def _check_accept(self, host, config: MRFConfig):
        if not self._accepted(host, config):
            raise PolicyRejection('[SimplePolicy] host not in accept list', self.name)

    def _check_reject(self, host, config: MRFConfig):
        if config.rules('reject').matches(host):
            raise PolicyRejection('[SimplePolicy] host in reject list', self.name)

    def _check_media_removal(self, host, activity, config: MRFConfig):
        obj = activity.get('object')
        if activity.get('type') not in ('Create', 'Update') or not isinstance(obj, dict):
            return activity
        if not obj.get('attachment'):
            return activity
        if config.rules('media_removal').matches(host):
            obj = {key: value for key, value in obj.items() if key != 'attachment'}
            return dict(activity, object=obj)
        return activity

    def _check_media_nsfw(self, host, activity, config: MRFConfig):
        obj = activity.get('object')
        if activity.get('type') not in ('Create', 'Update') or not isinstance(obj, dict):
            return activity
        if config.rules('media_nsfw').matches(host):
            return dict(activity, object=dict(obj, sensitive=True))
        return activity

    def _check_ftl_removal(self, host, activity, context: PolicyContext):
        if not context.config.rules('federated_timeline_removal').matches(host):
            return activity
        to = list(activity.get('to') or [])
        cc = list(activity.get('cc') or [])
        if AS_PUBLIC not in to:
            return activity

        actor = context.get_actor(activity['actor'])
        follower_address = actor.get('followers') if actor else None

        to = [address for address in to if address != AS_PUBLIC]
        if follower_address:
            if follower_address not in to:
                to.append(follower_address)
            cc = [address for address in cc if address != follower_address]
        if AS_PUBLIC not in cc:
            cc.append(AS_PUBLIC)
        return dict(activity, to=to, cc=cc)

    def _check_followers_only(self, host, activity, context: PolicyContext):
        if not context.config.rules('followers_only').matches(host):
            return activity

        to = list(activity.get('to') or [])
        cc = list(activity.get('cc') or [])
        actor = context.get_actor(activity['actor'])
        if actor is None:
            logger.info(f"followers_only: unknown actor {activity['actor']}, dropping all recipients")
            return dict(activity, to=[], cc=[])

        follower_address = actor.get('followers')
        followers = set(context.followers_of(activity['actor']))

        def narrow(addresses):
            allowed = [follower_address] + [address for address in addresses if address in followers]
            return [address for address in allowed if address in addresses]

        return dict(activity, to=narrow(to), cc=narrow(cc))

    def _check_report_removal(self, host, activity, config: MRFConfig):
        if activity.get('type') == 'Flag' and config.rules('report_removal').matches(host):
            raise PolicyRejection('[SimplePolicy] host in report_removal list', self.name)

    def _check_avatar_removal(self, host, activity, config: MRFConfig):
        if 'icon' in activity and config.rules('avatar_removal').matches(host):
            return {key: value for key, value in activity.items() if key != 'icon'}
        return activity

    def _check_banner_removal(self, host, activity, config: MRFConfig):
        if 'image' in activity and config.rules('banner_removal').matches(host):
            return {key: value for key, value in activity.items() if key != 'image'}
        return activity

    def _check_object(self, activity, context: PolicyContext):
        obj = activity.get('object')
        if isinstance(obj, str):
            self.filter(obj, context)
        elif isinstance(obj, dict):
            filtered = self.filter(obj, context)
            if filtered is not obj:
                return dict(activity, object=filtered)
        return activity
