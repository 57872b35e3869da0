"""Ensure a "re:" is prepended on replies to a post with a subject"""
from __future__ import annotations

import re

from fedmrf.federation.mrf import Policy, PolicyContext, register_policy
from fedmrf.federation.types import ActivityObject

REPLY_PREFIX = re.compile(r'^re:\s*', re.IGNORECASE)


def filter_by_summary(parent, child):
    """Return `child` with its summary carrying a reply marker where the parent's subject calls for one"""
    if not parent:
        return child
    parent_summary = parent.get('summary')
    child_summary = child.get('summary')
    if not isinstance(parent_summary, str) or not isinstance(child_summary, str):
        return child
    if parent_summary == '' or child_summary == '':
        return child

    duplicated = child_summary == parent_summary and not REPLY_PREFIX.match(child_summary)
    stripped_parent = REPLY_PREFIX.match(parent_summary) and REPLY_PREFIX.sub('', parent_summary, count=1) == child_summary
    if duplicated or stripped_parent:
        return dict(child, summary='re: ' + child_summary)
    return child


@register_policy('EnsureRePrepended')
class EnsureRePrepended(Policy):
    """Ensure a re: is prepended on replies to a post with a subject"""
    description = 'Ensure a re: is prepended on replies to a post with a subject'

    def filter(self, activity: ActivityObject, context: PolicyContext) -> ActivityObject:
        if not isinstance(activity, dict) or activity.get('type') not in ('Create', 'Update'):
            return activity
        child = activity.get('object')
        if not isinstance(child, dict):
            return activity

        # no remote fetch from inside the chain, only what is already stored
        parent = context.get_object(child.get('inReplyTo'), fetch=False)
        rewritten = filter_by_summary(parent, child)
        if rewritten is child:
            return activity
        return dict(activity, object=rewritten)
