"""
Tests for PolicyChain ordering, short-circuiting and transparency reporting
"""
import logging

import pytest

from fedmrf.federation.mrf import Policy, get_policy_registry
from fedmrf.federation.mrf.chain import PolicyChain
from fedmrf.federation.mrf.config import MRFConfig
from fedmrf.federation.types import PolicyRejection

from conftest import ATTACHMENT, make_create


class CountingPolicy(Policy):
    """Passes everything through, counting invocations"""
    name = 'Counting'

    def __init__(self):
        self.calls = 0

    def filter(self, activity, context):
        self.calls += 1
        return activity


class RejectingPolicy(Policy):
    name = 'Rejecting'

    def __init__(self):
        self.calls = 0

    def filter(self, activity, context):
        self.calls += 1
        raise PolicyRejection('no thanks')


class TaggingPolicy(Policy):
    name = 'Tagging'

    def __init__(self, tag):
        self.tag = tag

    def filter(self, activity, context):
        return dict(activity, tags=activity.get('tags', []) + [self.tag])


class MutatingPolicy(Policy):
    name = 'Mutating'

    def filter(self, activity, context):
        activity['object']['content'] = 'changed'
        return activity


class TestPolicyChain:

    def setup_method(self):
        self.config = MRFConfig()

    def test_identity(self):
        activity = make_create()
        policies = [CountingPolicy(), CountingPolicy(), CountingPolicy()]
        result = PolicyChain(policies, self.config).filter(activity)
        assert result == activity
        assert all(policy.calls == 1 for policy in policies)

    def test_empty_chain_is_identity(self):
        activity = make_create()
        assert PolicyChain([], self.config).filter(activity) == activity

    def test_short_circuit(self):
        first, rejecting, last = CountingPolicy(), RejectingPolicy(), CountingPolicy()
        chain = PolicyChain([first, rejecting, last], self.config)
        with pytest.raises(PolicyRejection) as e:
            chain.filter(make_create())
        assert e.value.reason == 'no thanks'
        assert e.value.policy == 'Rejecting'
        assert (first.calls, rejecting.calls, last.calls) == (1, 1, 0)

    def test_order(self):
        chain = PolicyChain([TaggingPolicy('a'), TaggingPolicy('b')], self.config)
        assert chain.filter(make_create())['tags'] == ['a', 'b']

    def test_input_never_mutated(self):
        activity = make_create()
        result = PolicyChain([MutatingPolicy()], self.config).filter(activity)
        assert result['object']['content'] == 'changed'
        assert activity['object']['content'] == 'Hello world'

    def test_none_result_is_a_bug(self):
        class Broken(Policy):
            name = 'Broken'

            def filter(self, activity, context):
                return None

        with pytest.raises(TypeError):
            PolicyChain([Broken()], self.config).filter(make_create())

    def test_from_config(self):
        config = MRFConfig.from_app_config({'MRF_POLICIES': ['SimplePolicy', 'KeywordPolicy']})
        assert PolicyChain.from_config(config).names == ['SimplePolicy', 'KeywordPolicy']

    def test_from_config_comma_separated(self):
        config = MRFConfig.from_app_config({'MRF_POLICIES': 'SimplePolicy, EnsureRePrepended'})
        assert PolicyChain.from_config(config).names == ['SimplePolicy', 'EnsureRePrepended']

    def test_unknown_policy_skipped(self, caplog):
        config = MRFConfig.from_app_config({'MRF_POLICIES': ['NoSuchPolicy', 'SimplePolicy']})
        with caplog.at_level(logging.WARNING):
            chain = PolicyChain.from_config(config)
        assert chain.names == ['SimplePolicy']
        assert 'NoSuchPolicy' in caplog.text

    def test_registry(self):
        assert {'SimplePolicy', 'KeywordPolicy', 'EnsureRePrepended'} <= set(get_policy_registry())

    def test_built_in_policies_together(self):
        config = MRFConfig.from_app_config({
            'MRF_POLICIES': ['SimplePolicy', 'KeywordPolicy'],
            'MRF_SIMPLE': {'media_removal': ['remote.example']},
            'MRF_KEYWORD': {'replace': [['Hello', 'Hi']]},
        })
        result = PolicyChain.from_config(config).filter(make_create(attachment=[ATTACHMENT]))
        assert 'attachment' not in result['object']
        assert result['object']['content'] == 'Hi world'

    def test_id_filter(self):
        config = MRFConfig.from_app_config({'MRF_POLICIES': ['SimplePolicy'],
                                            'MRF_SIMPLE': {'reject': ['remote.example']}})
        chain = PolicyChain.from_config(config)
        assert not chain.id_filter('https://remote.example/objects/1')
        assert chain.id_filter('https://other.example/objects/1')


class TestTransparency:

    def test_describe_all(self):
        config = MRFConfig.from_app_config({'MRF_POLICIES': ['SimplePolicy', 'EnsureRePrepended']})
        descriptors = PolicyChain.from_config(config).describe_all()
        assert [descriptor.name for descriptor in descriptors] == ['SimplePolicy', 'EnsureRePrepended']
        assert descriptors[1].info == {}
        assert descriptors[1].description

    def test_report(self):
        config = MRFConfig.from_app_config({
            'MRF_POLICIES': ['SimplePolicy'],
            'MRF_SIMPLE': {'reject': [['bad.example', 'spam']]},
            'MRF_TRANSPARENCY_EXCLUSIONS': [['hidden.example', '']],
        })
        report = PolicyChain.from_config(config).transparency_report()
        assert report['mrf_policies'] == ['SimplePolicy']
        assert report['exclusions'] is True
        assert report['mrf_simple']['reject'] == ['bad.example']

    def test_report_disabled(self):
        config = MRFConfig.from_app_config({'MRF_POLICIES': ['SimplePolicy'], 'MRF_TRANSPARENCY': False})
        assert PolicyChain.from_config(config).transparency_report() == {}
