"""Outbound federation work published to Redis Streams"""
from __future__ import annotations
import json
import logging
from typing import Optional, List
import redis
from flask import has_app_context

from fedmrf import db
from fedmrf.federation.types import ActivityObject, Priority, StreamMessage, get_activity_priority
from fedmrf.models import SendQueue
from fedmrf.utils import get_redis_connection, utcnow

logger = logging.getLogger(__name__)


class FederationProducer:
    """Producer for queueing committed local activities for delivery"""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client
        self._stream_names = {
            Priority.URGENT: 'federation:urgent',
            Priority.NORMAL: 'federation:normal',
            Priority.BULK: 'federation:bulk'
        }

    def get_redis(self) -> redis.Redis:
        """Get Redis client, using app context if available"""
        if self.redis:
            return self.redis

        if has_app_context():
            return get_redis_connection()

        raise RuntimeError("No Redis client available")

    def stream_for(self, priority: Priority) -> str:
        return self._stream_names[priority]

    def queue_activity(
        self,
        activity: ActivityObject,
        priority: Optional[Priority] = None,
        request_id: Optional[str] = None
    ) -> str:
        """
        Queue an activity for delivery

        Returns:
            Message ID from Redis Stream
        """
        if priority is None:
            priority = get_activity_priority(activity['type'])

        timestamp = utcnow(naive=False).isoformat()
        message_type = f"outbox.{activity['type']}"
        stream_message: StreamMessage = {
            'type': message_type,
            'data': json.dumps({'activity': activity, 'timestamp': timestamp, 'attempts': 0}),
            'priority': priority.value,
            'attempts': 0,
            'timestamp': timestamp
        }
        if request_id:
            stream_message['request_id'] = request_id

        stream_name = self._stream_names[priority]
        msg_id = self.get_redis().xadd(
            stream_name,
            stream_message,
            maxlen=100000  # Keep last 100k messages
        )

        logger.info(
            f"Queued {message_type} to {stream_name}: {msg_id}",
            extra={
                'activity_id': activity.get('id'),
                'activity_type': activity['type'],
                'priority': priority.value,
            }
        )
        return msg_id

    def publish(self, queued: SendQueue, request_id: Optional[str] = None) -> Optional[str]:
        """
        Publish one SendQueue row and mark it sent. A Redis failure, or a REDIS_URL that can't be parsed,
        is logged and leaves the row unsent for `flask mrf send-queue` to pick up later.
        """
        try:
            msg_id = self.queue_activity(json.loads(queued.activity_json), Priority(queued.priority),
                                         request_id=request_id)
        except (redis.RedisError, RuntimeError, ValueError) as e:
            logger.warning(f"Could not publish {queued.activity_id}, leaving it queued: {e}")
            queued.retry_count += 1
            queued.last_error = str(e)
            db.session.commit()
            return None

        queued.sent = True
        queued.sent_at = utcnow()
        queued.stream_message_id = msg_id
        queued.last_error = None
        db.session.commit()
        return msg_id

    def publish_unsent(self, limit: int = 500) -> List[str]:
        """Publish SendQueue rows that never made it to Redis, oldest first"""
        unsent = db.session.query(SendQueue).filter(SendQueue.sent == False).\
            order_by(SendQueue.id).limit(limit).all()
        message_ids = []
        for queued in unsent:
            msg_id = self.publish(queued)
            if msg_id is None:
                break  # Redis is down, no point trying the rest
            message_ids.append(msg_id)
        return message_ids


# Singleton instance for easy access
_producer: Optional[FederationProducer] = None


def get_producer() -> FederationProducer:
    """Get the singleton producer instance"""
    global _producer
    if _producer is None:
        _producer = FederationProducer()
    return _producer
