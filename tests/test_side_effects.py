"""
Tests for the per-type side effects of a committed activity
"""
from unittest.mock import Mock

import pytest

from fedmrf import db
from fedmrf.constants import AS_PUBLIC
from fedmrf.federation.pipeline import Pipeline
from fedmrf.federation.side_effects import get_side_effect_registry, recipients_of, visibility_of
from fedmrf.models import User, UserFollower

BOB = 'https://remote.example/users/bob'
ALICE = 'https://test.localhost/u/alice'


def follow(number=1):
    return {'id': f'https://remote.example/activities/follow/{number}', 'type': 'Follow', 'actor': BOB,
            'to': [ALICE], 'object': ALICE}


class TestVisibility:

    @pytest.mark.parametrize('to, cc, expected', [
        ([AS_PUBLIC], [], 'public'),
        (['https://x.example/u/a/followers'], [AS_PUBLIC], 'unlisted'),
        (['https://x.example/u/a/followers'], [], 'private'),
        (['https://x.example/u/b'], [], 'direct'),
        ([], [], 'direct'),
    ])
    def test_visibility_of(self, to, cc, expected):
        assert visibility_of({'to': to, 'cc': cc}) == expected

    def test_recipients_deduplicated(self):
        activity = {'to': [AS_PUBLIC, 'https://x.example/u/b'], 'cc': ['https://x.example/u/b'],
                    'bcc': 'https://x.example/u/c', 'audience': ['https://x.example/c/group']}
        assert recipients_of(activity) == [AS_PUBLIC, 'https://x.example/u/b', 'https://x.example/u/c',
                                           'https://x.example/c/group']

    def test_registry(self):
        assert {'Create', 'Update', 'Delete', 'Follow', 'Undo', 'Flag', 'Like', 'Announce'} <= \
            set(get_side_effect_registry())


class TestFollows:

    def setup_method(self):
        self.pipeline = Pipeline(producer=Mock())

    def test_follow_and_undo(self, app, local_user, remote_user):
        result = self.pipeline.process(follow())
        assert result.receipt.effects == ('follow.recorded',)
        assert local_user.follower_ids() == [BOB]

        undo = {'id': 'https://remote.example/activities/undo/1', 'type': 'Undo', 'actor': BOB,
                'to': [ALICE], 'object': follow()}
        result = self.pipeline.process(undo)
        assert result.receipt.effects == ('follow.removed',)
        assert db.session.query(UserFollower).count() == 0

    def test_undo_by_reference(self, app, local_user, remote_user):
        self.pipeline.process(follow())
        undo = {'id': 'https://remote.example/activities/undo/1', 'type': 'Undo', 'actor': BOB,
                'object': follow()['id']}
        assert self.pipeline.process(undo).receipt.effects == ('follow.removed',)

    def test_follow_twice_with_new_ids(self, app, local_user, remote_user):
        self.pipeline.process(follow(1))
        result = self.pipeline.process(follow(2))
        assert result.receipt.effects == ('follow.exists',)
        assert db.session.query(UserFollower).count() == 1

    def test_follow_unknown_actor(self, app, local_user):
        result = self.pipeline.process(follow())
        assert result.ok
        assert result.receipt.effects == ('follow.unknown_actor',)


class TestActorUpdates:

    def setup_method(self):
        self.pipeline = Pipeline(producer=Mock())

    def actor_update(self, actor_id=BOB, **document):
        actor = {'id': actor_id, 'type': 'Person', 'preferredUsername': 'bob', 'name': 'Bob',
                 'summary': 'About bob', 'followers': actor_id + '/followers', 'inbox': actor_id + '/inbox',
                 'icon': {'type': 'Image', 'url': 'https://remote.example/bob.png'}}
        actor.update(document)
        return {'id': 'https://remote.example/activities/update/1', 'type': 'Update', 'actor': BOB,
                'to': [AS_PUBLIC], 'object': actor}

    def test_new_remote_actor(self, app):
        result = self.pipeline.process(self.actor_update())
        assert result.receipt.effects == ('actor.created',)
        user = db.session.query(User).filter_by(ap_profile_id=BOB).one()
        assert user.title == 'Bob'
        assert user.avatar == {'url': 'https://remote.example/bob.png'}
        assert user.ap_domain == 'remote.example'
        assert not user.local

    def test_existing_remote_actor(self, app, remote_user):
        result = self.pipeline.process(self.actor_update(name='Robert'))
        assert result.receipt.effects == ('actor.updated',)
        assert remote_user.title == 'Robert'

    def test_avatar_removal_reaches_the_database(self, app, remote_user):
        app.config['MRF_SIMPLE'] = {'avatar_removal': ['remote.example']}
        self.pipeline.process(self.actor_update())
        assert remote_user.avatar is None

    def test_cannot_update_someone_else(self, app, remote_user):
        result = self.pipeline.process(self.actor_update(actor_id='https://remote.example/users/carol'))
        assert result.receipt.effects == ('update.ignored',)

    def test_actor_delete(self, app, remote_user):
        delete = {'id': 'https://remote.example/activities/delete/bob', 'type': 'Delete', 'actor': BOB,
                  'to': [AS_PUBLIC], 'object': BOB}
        result = self.pipeline.process(delete)
        assert result.receipt.effects == ('actor.deleted',)
        assert remote_user.deleted
