"""
Tests for building outgoing activities from local actions
"""
import pytest

from fedmrf.constants import AS_PUBLIC
from fedmrf.federation.builder import ActivityBuilder
from fedmrf.federation.types import BuildError

ACTOR = {'id': 'https://test.localhost/u/alice', 'followers': 'https://test.localhost/u/alice/followers'}
FOLLOWERS = ACTOR['followers']


class TestActivityBuilder:

    def setup_method(self):
        self.builder = ActivityBuilder('test.localhost')

    def assert_well_formed(self, activity, activity_type):
        assert activity['type'] == activity_type
        assert activity['actor'] == ACTOR['id']
        assert activity['id'].startswith(f'https://test.localhost/activities/{activity_type.lower()}/')
        assert isinstance(activity['to'], list)
        assert isinstance(activity['cc'], list)

    def test_ids_are_unique(self):
        assert self.builder.new_id('like') != self.builder.new_id('like')

    def test_create_public(self):
        activity = self.builder.build('create', ACTOR, {'object': {'content': 'hi'}})
        self.assert_well_formed(activity, 'Create')
        assert activity['to'] == [AS_PUBLIC]
        assert activity['cc'] == [FOLLOWERS]
        assert activity['object']['attributedTo'] == ACTOR['id']
        assert activity['object']['type'] == 'Note'
        assert activity['object']['id'].startswith('https://test.localhost/objects/')
        assert activity['object']['to'] == activity['to']

    @pytest.mark.parametrize('visibility, to, cc', [
        ('unlisted', [FOLLOWERS], [AS_PUBLIC, 'https://remote.example/users/bob']),
        ('private', [FOLLOWERS, 'https://remote.example/users/bob'], []),
        ('direct', ['https://remote.example/users/bob'], []),
    ])
    def test_create_visibility(self, visibility, to, cc):
        activity = self.builder.build('Create', ACTOR, {'object': {'content': 'hi'}, 'visibility': visibility,
                                                        'mentions': ['https://remote.example/users/bob']})
        assert activity['to'] == to
        assert activity['cc'] == cc

    def test_direct_needs_recipient(self):
        with pytest.raises(BuildError):
            self.builder.build('create', ACTOR, {'object': {'content': 'hi'}, 'visibility': 'direct'})

    def test_unknown_visibility(self):
        with pytest.raises(BuildError):
            self.builder.build('create', ACTOR, {'object': {'content': 'hi'}, 'visibility': 'secret'})

    def test_create_needs_object(self):
        with pytest.raises(BuildError):
            self.builder.build('create', ACTOR, {'object': 'https://test.localhost/objects/1'})

    def test_update(self):
        activity = self.builder.build('update', ACTOR, {'object': {'id': ACTOR['id'], 'type': 'Person'}})
        self.assert_well_formed(activity, 'Update')
        assert activity['to'] == [AS_PUBLIC]
        assert activity['cc'] == [FOLLOWERS]

    def test_delete(self):
        activity = self.builder.build('delete', ACTOR, {'object': 'https://test.localhost/objects/1'})
        self.assert_well_formed(activity, 'Delete')
        assert activity['object'] == 'https://test.localhost/objects/1'

    def test_flag(self):
        activity = self.builder.build('flag', ACTOR, {'account': 'https://remote.example/users/bob',
                                                      'statuses': ['https://remote.example/objects/1'],
                                                      'content': 'spam', 'forward': True})
        self.assert_well_formed(activity, 'Flag')
        assert activity['object'] == ['https://remote.example/users/bob', 'https://remote.example/objects/1']
        assert activity['to'] == ['https://remote.example/users/bob']
        assert activity['content'] == 'spam'

    def test_flag_needs_account(self):
        with pytest.raises(BuildError):
            self.builder.build('flag', ACTOR, {'content': 'spam'})

    def test_follow(self):
        activity = self.builder.build('follow', ACTOR, {'object': 'https://remote.example/users/bob'})
        self.assert_well_formed(activity, 'Follow')
        assert activity['to'] == ['https://remote.example/users/bob']

    def test_cannot_follow_self(self):
        with pytest.raises(BuildError):
            self.builder.build('follow', ACTOR, {'object': ACTOR['id']})

    def test_announce_and_like(self):
        announce = self.builder.build('announce', ACTOR, {'object': 'https://remote.example/objects/1',
                                                          'object_actor': 'https://remote.example/users/bob'})
        self.assert_well_formed(announce, 'Announce')
        assert announce['cc'] == [AS_PUBLIC]
        like = self.builder.build('like', ACTOR, {'object': {'id': 'https://remote.example/objects/1'}})
        self.assert_well_formed(like, 'Like')
        assert like['object'] == 'https://remote.example/objects/1'

    def test_undo_own_activity(self):
        follow = self.builder.build('follow', ACTOR, {'object': 'https://remote.example/users/bob'})
        undo = self.builder.build('undo', ACTOR, {'object': follow})
        self.assert_well_formed(undo, 'Undo')
        assert undo['object'] == follow
        assert undo['to'] == follow['to']

    def test_undo_someone_elses_activity(self):
        with pytest.raises(BuildError):
            self.builder.build('undo', ACTOR, {'object': {'type': 'Follow', 'actor': 'https://remote.example/users/bob'}})

    def test_unknown_kind(self):
        with pytest.raises(BuildError):
            self.builder.build('teleport', ACTOR, {})

    def test_bad_actor(self):
        with pytest.raises(BuildError):
            self.builder.build('like', 'alice', {'object': 'https://remote.example/objects/1'})
        with pytest.raises(BuildError):
            self.builder.build('like', {'id': 'not a uri'}, {'object': 'https://remote.example/objects/1'})

    def test_user_actor(self, app, local_user):
        activity = ActivityBuilder.from_app().build('like', local_user, {'object': 'https://remote.example/objects/1'})
        assert activity['actor'] == 'https://test.localhost/u/alice'
        assert activity['to'][0] == 'https://test.localhost/u/alice/followers'

    def test_full_context(self):
        builder = ActivityBuilder('test.localhost', full_context=True)
        assert isinstance(builder.default_context()[-1], dict)
        assert builder.default_context()[0] == 'https://www.w3.org/ns/activitystreams'
