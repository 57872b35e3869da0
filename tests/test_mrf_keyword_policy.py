"""
Tests for KeywordPolicy
"""
import pytest

from fedmrf.constants import AS_PUBLIC
from fedmrf.federation.mrf import PolicyContext
from fedmrf.federation.mrf.config import MRFConfig
from fedmrf.federation.mrf.keyword_policy import KeywordPolicy, compile_pattern
from fedmrf.federation.types import PolicyRejection

from conftest import make_create


def context_for(keyword):
    return PolicyContext(config=MRFConfig.from_app_config({'MRF_KEYWORD': keyword}))


class TestKeywordPolicy:

    def setup_method(self):
        self.policy = KeywordPolicy()

    def test_no_rules(self):
        activity = make_create()
        assert self.policy.filter(activity, context_for({})) is activity

    def test_reject_plain(self):
        with pytest.raises(PolicyRejection) as e:
            self.policy.filter(make_create(content='buy cheap pills'), context_for({'reject': ['pills']}))
        assert e.value.reason == '[KeywordPolicy] Matches with rejected keyword'

    def test_reject_regex_in_summary(self):
        with pytest.raises(PolicyRejection):
            self.policy.filter(make_create(summary='Casino night'), context_for({'reject': ['/[Cc]asino/']}))

    def test_plain_pattern_is_not_a_regex(self):
        activity = make_create(content='nothing to see')
        assert self.policy.filter(activity, context_for({'reject': ['.*']})) is activity

    def test_invalid_regex_never_matches(self):
        activity = make_create(content='(((')
        assert self.policy.filter(activity, context_for({'reject': ['/(((/']})) is activity
        assert compile_pattern('/(((/') is None

    def test_federated_timeline_removal(self):
        result = self.policy.filter(make_create(content='politics again'),
                                    context_for({'federated_timeline_removal': ['politics']}))
        assert AS_PUBLIC not in result['to']
        assert result['cc'][0] == AS_PUBLIC

    def test_replace(self):
        result = self.policy.filter(make_create(content='I love cats', summary='cats!'),
                                    context_for({'replace': [['cats', 'dogs'], ['/l(o)ve/', 'l\\1\\1ve']]}))
        assert result['object']['content'] == 'I loove dogs'
        assert result['object']['summary'] == 'dogs!'

    def test_only_create(self):
        update = make_create(content='pills')
        update['type'] = 'Update'
        assert self.policy.filter(update, context_for({'reject': ['pills']})) is update

    def test_describe(self):
        config = MRFConfig.from_app_config({'MRF_KEYWORD': {'reject': ['pills'], 'replace': [['a', 'b']]}})
        assert self.policy.describe(config) == {'mrf_keyword': {
            'reject': ['pills'], 'federated_timeline_removal': [],
            'replace': [{'pattern': 'a', 'replacement': 'b'}]}}
