"""Tests for app.lifecycle.jobs — RQ dispatch and the classification job."""
import pytest
from unittest.mock import patch, MagicMock

from app.lifecycle import jobs
from app.lifecycle.base import BotResult, Classification, Phase
from app.lifecycle.errors import ClassificationFailed, ConcurrencyConflict
from app.services import store


@pytest.fixture
def lifecycle(active_config, make_lifecycle):
    active_config()
    return make_lifecycle()


@pytest.fixture
def lead(lifecycle, submission):
    return lifecycle.submit(submission).lead


def _classifier(classification, confidence):
    return MagicMock(return_value=BotResult(classification, confidence))


class TestDispatch:

    def test_enqueues_with_job_id(self):
        queue = MagicMock()
        queue.enqueue.return_value = MagicMock(id='classify-abc')
        with patch.object(jobs, '_get_queue', return_value=queue):
            jobs.dispatch_classification('abc')

        args, kwargs = queue.enqueue.call_args
        assert args == (jobs.process_inbound_lead, 'abc')
        assert kwargs['job_id'] == 'classify-abc'
        assert kwargs['job_timeout'] == jobs.CLASSIFICATION_JOB_TIMEOUT


class TestProcessInboundLead:

    def test_applies_result(self, lifecycle, lead):
        classify = _classifier(Classification.SUPPORT, 0.5)
        status = jobs.process_inbound_lead(lead.id, lifecycle=lifecycle, classify=classify)

        assert status == 'applied'
        assert store.get_lead(lead.id).current_classification is Classification.SUPPORT
        assert classify.call_args.kwargs['prompt']

    def test_missing_lead(self, lifecycle):
        assert jobs.process_inbound_lead('nope', lifecycle=lifecycle, classify=MagicMock()) == 'missing'

    def test_closed_lead_not_classified(self, lifecycle, lead):
        lifecycle.human_classify(lead.id, 'irrelevant')
        classify = MagicMock()
        assert jobs.process_inbound_lead(lead.id, lifecycle=lifecycle, classify=classify) == 'closed'
        classify.assert_not_called()

    def test_classification_failure_hands_to_human(self, lifecycle, lead):
        classify = MagicMock(side_effect=ClassificationFailed('bad json', service='openai'))
        status = jobs.process_inbound_lead(lead.id, lifecycle=lifecycle, classify=classify)

        assert status == 'classification_failed'
        updated = store.get_lead(lead.id)
        assert updated.phase is Phase.CLASSIFY
        assert updated.last_error['stage'] == 'classification'

    def test_delivery_failure(self, lifecycle, lead):
        lifecycle.send = MagicMock(return_value=MagicMock(success=False, error='down'))
        status = jobs.process_inbound_lead(lead.id, lifecycle=lifecycle,
                                           classify=_classifier(Classification.LOW_QUALITY, 0.9))
        assert status == 'delivery_failed'

    def test_retries_lost_race(self, lifecycle, lead):
        real = lifecycle.auto_classify
        calls = []

        def flaky(lead_id, result):
            calls.append(lead_id)
            if len(calls) == 1:
                raise ConcurrencyConflict('raced', lead_id=lead_id)
            return real(lead_id, result)

        lifecycle.auto_classify = flaky
        status = jobs.process_inbound_lead(lead.id, lifecycle=lifecycle,
                                           classify=_classifier(Classification.SUPPORT, 0.5))
        assert status == 'applied'
        assert len(calls) == 2

    def test_gives_up_after_repeated_conflicts(self, lifecycle, lead):
        lifecycle.auto_classify = MagicMock(side_effect=ConcurrencyConflict('raced'))
        status = jobs.process_inbound_lead(lead.id, lifecycle=lifecycle,
                                           classify=_classifier(Classification.SUPPORT, 0.5))

        assert status == 'conflict'
        assert lifecycle.auto_classify.call_count == jobs.MAX_APPLY_ATTEMPTS
        assert 'repeated conflicts' in store.get_lead(lead.id).last_error['message']

    def test_stale_result_ignored(self, lifecycle, lead):
        lifecycle.auto_classify(lead.id, BotResult(Classification.SUPPORT, 0.5))
        status = jobs.process_inbound_lead(lead.id, lifecycle=lifecycle,
                                           classify=_classifier(Classification.EXISTING, 0.5))
        assert status == 'ignored'
