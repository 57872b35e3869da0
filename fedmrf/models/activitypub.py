"""ActivityPub and federation models for fedmrf"""
from __future__ import annotations
from typing import Optional, Dict, Any
from datetime import datetime
from sqlalchemy import String, Integer, Boolean, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fedmrf import db
from fedmrf.models.base import TimestampMixin, SoftDeleteMixin


class Activity(TimestampMixin, db.Model):
    """A committed activity, immutable once written"""
    __tablename__ = 'activity'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ap_id: Mapped[str] = mapped_column(String(512), unique=True, index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    actor: Mapped[Optional[str]] = mapped_column(String(512), index=True)
    object_ap_id: Mapped[Optional[str]] = mapped_column(String(512), index=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    local: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    visibility: Mapped[str] = mapped_column(String(20), nullable=False)

    recipients = relationship('ActivityRecipient', cascade='all, delete-orphan', lazy='dynamic')


class ActivityRecipient(db.Model):
    """Recipient index derived from an activity's addressing"""
    __tablename__ = 'activity_recipient'
    __table_args__ = (UniqueConstraint('activity_id', 'recipient', name='uq_activity_recipient'),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    activity_id: Mapped[int] = mapped_column(Integer, ForeignKey('activity.id'), index=True, nullable=False)
    recipient: Mapped[str] = mapped_column(String(512), index=True, nullable=False)


class StoredObject(TimestampMixin, SoftDeleteMixin, db.Model):
    """An object (Note, Article, Question...) persisted by a Create"""
    __tablename__ = 'stored_object'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ap_id: Mapped[str] = mapped_column(String(512), unique=True, index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    actor: Mapped[Optional[str]] = mapped_column(String(512), index=True)
    in_reply_to: Mapped[Optional[str]] = mapped_column(String(512), index=True)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    activity_ap_id: Mapped[Optional[str]] = mapped_column(String(512))


class SendQueue(TimestampMixin, db.Model):
    """Queue for outgoing federation activities"""
    __tablename__ = 'send_queue'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Activity details
    activity_id: Mapped[str] = mapped_column(String(512), index=True, nullable=False)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    activity_json: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False)

    # Processing
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    stream_message_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Error tracking
    last_error: Mapped[Optional[str]] = mapped_column(Text)


class ActivityPubLog(TimestampMixin, db.Model):
    """ActivityPub activity logging"""
    __tablename__ = 'activity_pub_log'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Activity details
    direction: Mapped[str] = mapped_column(String(3), nullable=False)  # 'in' or 'out'
    activity_id: Mapped[Optional[str]] = mapped_column(String(512), index=True)
    activity_type: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    result: Mapped[Optional[str]] = mapped_column(String(10))  # 'success', 'ignored' or 'failure'
    activity_json: Mapped[Optional[str]] = mapped_column(Text)

    # Error tracking
    exception_message: Mapped[Optional[str]] = mapped_column(Text)
