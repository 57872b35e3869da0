"""fedmrf models package

- base.py: mixins
- user.py: actors and follow relations
- activitypub.py: committed activities, stored objects, the outbound queue and the audit log
"""

from fedmrf.models.base import TimestampMixin, SoftDeleteMixin

from fedmrf.models.user import User, UserFollower

from fedmrf.models.activitypub import (
    Activity, ActivityRecipient, StoredObject, SendQueue, ActivityPubLog
)

__all__ = [
    'TimestampMixin', 'SoftDeleteMixin',
    'User', 'UserFollower',
    'Activity', 'ActivityRecipient', 'StoredObject', 'SendQueue', 'ActivityPubLog',
]
