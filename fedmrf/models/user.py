"""Actors (local and remote) and follow relations"""
from __future__ import annotations
from typing import Optional, List, Dict, Any
from sqlalchemy import String, Integer, Boolean, Text, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from flask import current_app

from fedmrf import db
from fedmrf.constants import VISIBILITY_PUBLIC
from fedmrf.models.base import TimestampMixin, SoftDeleteMixin


class User(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = 'user'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    local: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # ActivityPub
    ap_profile_id: Mapped[Optional[str]] = mapped_column(String(255), index=True, unique=True)
    ap_public_url: Mapped[Optional[str]] = mapped_column(String(255))
    ap_followers_url: Mapped[Optional[str]] = mapped_column(String(255))
    ap_inbox_url: Mapped[Optional[str]] = mapped_column(String(255))
    ap_domain: Mapped[Optional[str]] = mapped_column(String(255), index=True)

    # Federated profile
    title: Mapped[Optional[str]] = mapped_column(String(256))   # display name
    about: Mapped[Optional[str]] = mapped_column(Text)          # bio
    avatar: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    banner: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    fields: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON)
    actor_type: Mapped[str] = mapped_column(String(20), default='Person', nullable=False)
    locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    discoverable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    also_known_as: Mapped[Optional[List[str]]] = mapped_column(JSON)

    # Local-only settings, never federated
    hide_followers: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    hide_follows: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    hide_followers_count: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    hide_follows_count: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    hide_favorites: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    no_rich_text: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    show_role: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    skip_thread_containment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    allow_following_move: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    accepts_chat_messages: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    default_scope: Mapped[str] = mapped_column(String(20), default=VISIBILITY_PUBLIC, nullable=False)

    def __repr__(self):
        return '<User {}>'.format(self.user_name)

    def profile_id(self) -> str:
        if self.ap_profile_id:
            return self.ap_profile_id
        return f"{current_app.config['HTTP_PROTOCOL']}://{current_app.config['SERVER_NAME']}/u/{self.user_name.lower()}"

    def public_url(self) -> str:
        return self.ap_public_url if self.ap_public_url else self.profile_id()

    def followers_url(self) -> str:
        return self.ap_followers_url if self.ap_followers_url else self.profile_id() + '/followers'

    def inbox_url(self) -> str:
        return self.ap_inbox_url if self.ap_inbox_url else self.profile_id() + '/inbox'

    def follower_ids(self) -> List[str]:
        rows = db.session.query(User.ap_profile_id, User.user_name, User.local).\
            join(UserFollower, UserFollower.follower_id == User.id).\
            filter(UserFollower.followed_id == self.id).all()
        result = []
        for ap_profile_id, user_name, local in rows:
            if ap_profile_id:
                result.append(ap_profile_id)
            elif local:
                result.append(f"{current_app.config['HTTP_PROTOCOL']}://{current_app.config['SERVER_NAME']}/u/{user_name.lower()}")
        return result


class UserFollower(db.Model):
    __tablename__ = 'user_follower'
    __table_args__ = (UniqueConstraint('follower_id', 'followed_id', name='uq_user_follower'),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    follower_id: Mapped[int] = mapped_column(Integer, ForeignKey('user.id'), index=True, nullable=False)
    followed_id: Mapped[int] = mapped_column(Integer, ForeignKey('user.id'), index=True, nullable=False)
    follow_activity_id: Mapped[Optional[str]] = mapped_column(String(255))
