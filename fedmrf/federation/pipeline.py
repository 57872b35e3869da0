"""Validate, filter and commit one activity

``Pipeline.process`` takes a raw body, an already parsed document or a :class:`LocalAction` and walks it
through ``RECEIVED -> VALIDATED -> POLICY_EVALUATED -> COMMITTED``. Validation failures and policy
rejections end in ``REJECTED``, a failed commit in ``COMMIT_FAILED``. Nothing is committed unless the
whole commit step succeeds.
"""
from __future__ import annotations

import dataclasses
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple, Union

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from fedmrf import db
from fedmrf.constants import APLOG_FAILURE, APLOG_IGNORED, APLOG_SUCCESS
from fedmrf.federation.builder import ActivityBuilder
from fedmrf.federation.mrf import PolicyContext
from fedmrf.federation.mrf.chain import PolicyChain
from fedmrf.federation.mrf.config import MRFConfig
from fedmrf.federation.producer import FederationProducer, get_producer
from fedmrf.federation.profile import ProfileChangeset, build_profile_changeset, render_actor
from fedmrf.federation.side_effects import CommitState, apply_side_effects, record_activity
from fedmrf.federation.store import ObjectStore, forget_stored_object
from fedmrf.federation.types import ActivityObject, BuildError, DuplicateActivity, FederationError, \
    PersistenceError, PipelineCancelled, PipelineResult, PipelineState, PolicyRejection, SideEffectReceipt, \
    ValidationError, get_activity_priority
from fedmrf.federation.validator import validate
from fedmrf.models import Activity, ActivityPubLog, SendQueue
from fedmrf.security.json_validator import SafeJSONParser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalAction:
    """Something a local user did, e.g. ``LocalAction('update_profile', user, {'note': 'hi'})``"""
    kind: str
    actor: Any
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PipelineContext:
    local: bool = False
    changeset: Optional[ProfileChangeset] = None
    cancel_event: Optional[threading.Event] = None
    request_id: Optional[str] = None
    direction: str = 'in'

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


class Pipeline:
    """
    Args:
        config: fixed configuration snapshot. By default a new snapshot of ``app.config`` is taken at the
            start of every invocation.
        chain: fixed policy chain. By default built from the snapshot.
        store: object store handed to policies
        producer: publishes committed local activities
        builder: builds activities for local actions
    """

    def __init__(self, config: Optional[MRFConfig] = None, chain: Optional[PolicyChain] = None,
                 store: Optional[ObjectStore] = None, producer: Optional[FederationProducer] = None,
                 builder: Optional[ActivityBuilder] = None):
        self.config = config
        self.chain = chain
        self.store = store
        self.producer = producer
        self.builder = builder

    def process(self, item: Union[bytes, str, Mapping[str, Any], LocalAction],
                context: Optional[PipelineContext] = None) -> PipelineResult:
        context = context or PipelineContext()
        config = self.config or MRFConfig.from_app_config(current_app.config)
        history: List[PipelineState] = []
        self._transition(history, PipelineState.RECEIVED, item)

        # local actions and raw bodies
        try:
            if isinstance(item, LocalAction):
                item, context = self.prepare_local(item, context, config)
            elif isinstance(item, (bytes, str)):
                try:
                    item = SafeJSONParser().parse(item)
                except ValueError as e:
                    raise ValidationError(str(e), {'_schema': [str(e)]}, reason='invalid_json') from e
        except (ValidationError, BuildError) as e:
            return self._finish(history, PipelineState.REJECTED, context, item, error=e)

        result = validate(item)
        if not result.ok:
            return self._finish(history, PipelineState.REJECTED, context, item, error=result.error)
        activity = result.value
        missing = [key for key in ('id', 'actor') if not isinstance(activity.get(key), str)]
        if missing:
            error = ValidationError(f"{activity['type']} is not an activity",
                                    {key: ['Missing data for required field.'] for key in missing})
            return self._finish(history, PipelineState.REJECTED, context, activity, error=error)
        self._transition(history, PipelineState.VALIDATED, activity)

        if context.cancelled:
            return self._finish(history, PipelineState.REJECTED, context, activity,
                                error=PipelineCancelled(f"Cancelled before policies ran on {activity['id']}"))

        chain = self.chain or PolicyChain.from_config(config)
        store = self.store or ObjectStore(chain=chain)
        try:
            activity = chain.filter(activity, PolicyContext(config=config, store=store))
        except PolicyRejection as rejection:
            return self._finish(history, PipelineState.REJECTED, context, activity, error=rejection)
        self._transition(history, PipelineState.POLICY_EVALUATED, activity)

        # last point an invocation can be abandoned
        if context.cancelled:
            return self._finish(history, PipelineState.REJECTED, context, activity,
                                error=PipelineCancelled(f"Cancelled before commit of {activity['id']}"))

        try:
            receipt, queued, touched = self.commit(activity, context)
        except DuplicateActivity as e:
            db.session.rollback()
            return self._finish(history, PipelineState.REJECTED, context, activity, error=e)
        except IntegrityError as e:
            db.session.rollback()
            # lost a race with a concurrent delivery of the same activity
            existing = db.session.query(Activity).filter_by(ap_id=activity['id']).first()
            if existing is not None:
                return self._finish(history, PipelineState.COMMITTED, context, activity,
                                    receipt=noop_receipt(existing))
            logger.error(f"Commit of {activity['id']} failed", exc_info=True)
            return self._finish(history, PipelineState.COMMIT_FAILED, context, activity,
                                error=PersistenceError(str(e)))
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Commit of {activity['id']} failed", exc_info=True)
            return self._finish(history, PipelineState.COMMIT_FAILED, context, activity,
                                error=PersistenceError(str(e)))

        for ap_id in touched:
            forget_stored_object(ap_id)
        if queued is not None:
            (self.producer or get_producer()).publish(queued, request_id=context.request_id)

        return self._finish(history, PipelineState.COMMITTED, context, activity, receipt=receipt)

    def prepare_local(self, action: LocalAction, context: PipelineContext,
                      config: MRFConfig) -> Tuple[ActivityObject, PipelineContext]:
        """
        Turn a local action into an activity.

        Raises:
            ValidationError: the action's parameters are invalid, no activity is built
            BuildError: the builder could not produce an activity
        """
        builder = self.builder or ActivityBuilder.from_app()
        context = dataclasses.replace(context, local=True, direction='out')
        if action.kind == 'update_profile':
            changeset = build_profile_changeset(action.actor, action.params, config)
            activity = builder.build('update', action.actor, {'object': render_actor(action.actor, changeset)})
            return activity, dataclasses.replace(context, changeset=changeset)
        return builder.build(action.kind, action.actor, action.params), context

    def commit(self, activity: ActivityObject,
               context: PipelineContext) -> Tuple[SideEffectReceipt, Optional[SendQueue], List[str]]:
        """
        Apply side effects, record the activity and queue outbound work in one transaction.

        Raises:
            DuplicateActivity: the activity would create a record that already exists
            SQLAlchemyError: the transaction failed, nothing was committed
        """
        existing = db.session.query(Activity).filter_by(ap_id=activity['id']).first()
        if existing is not None:
            return noop_receipt(existing), None, []

        state = CommitState(activity=activity, local=context.local, changeset=context.changeset)
        apply_side_effects(activity, state)
        record = record_activity(activity, context.local)

        queued = None
        if context.local:
            queued = SendQueue(activity_id=activity['id'], activity_type=activity['type'],
                               activity_json=json.dumps(activity),
                               priority=get_activity_priority(activity['type']).value)
            db.session.add(queued)

        db.session.commit()

        receipt = SideEffectReceipt(activity_id=activity['id'], record_id=record.id, object_id=state.object_id,
                                    queued=(queued.id,) if queued is not None else (),
                                    local_changes=tuple(state.local_changes), effects=tuple(state.effects))
        return receipt, queued, state.touched_objects

    # Helpers

    def _transition(self, history: List[PipelineState], state: PipelineState, activity):
        history.append(state)
        logger.debug(f"{_label(activity)} -> {state.name}")

    def _finish(self, history: List[PipelineState], state: PipelineState, context: PipelineContext, activity,
                receipt: Optional[SideEffectReceipt] = None,
                error: Optional[FederationError] = None) -> PipelineResult:
        self._transition(history, state, activity)
        if isinstance(error, PolicyRejection):
            logger.info(f"{_label(activity)} rejected by {error.policy}: {error.reason}")
        elif error is not None and state == PipelineState.REJECTED:
            logger.info(f"{_label(activity)} rejected: {error}")

        if receipt is not None and receipt.noop:
            result = APLOG_IGNORED
        elif state == PipelineState.COMMITTED:
            result = APLOG_SUCCESS
        elif isinstance(error, PolicyRejection):
            result = APLOG_IGNORED
        else:
            result = APLOG_FAILURE
        log_activity(context.direction, activity, result, error_message(error, receipt))

        return PipelineResult(state=state, activity=activity if isinstance(activity, dict) else None,
                              receipt=receipt, error=error, history=tuple(history))


def noop_receipt(existing: Activity) -> SideEffectReceipt:
    return SideEffectReceipt(activity_id=existing.ap_id, record_id=existing.id, object_id=existing.object_ap_id,
                             noop=True)


def error_message(error: Optional[FederationError], receipt: Optional[SideEffectReceipt]) -> Optional[str]:
    if receipt is not None and receipt.noop:
        return 'Activity already processed'
    if isinstance(error, PolicyRejection):
        return error.reason
    if isinstance(error, ValidationError):
        return f"{error.message}: {json.dumps(error.errors, default=str)}"
    return str(error) if error is not None else None


def log_activity(direction: str, activity, result: str, exception_message: Optional[str] = None):
    """Audit log entry, written in its own transaction after the activity's commit or rollback"""
    activity_id = activity.get('id') if isinstance(activity, dict) else None
    activity_type = activity.get('type') if isinstance(activity, dict) else None
    if current_app.config.get('LOG_ACTIVITYPUB_TO_DB'):
        activity_log = ActivityPubLog(direction=direction, activity_id=activity_id,
                                      activity_type=activity_type, result=result)
        activity_log.exception_message = exception_message
        if isinstance(activity, dict):
            activity_log.activity_json = json.dumps(activity, default=str)
        try:
            db.session.add(activity_log)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(f"Could not write the audit log entry for {activity_id}")
    if current_app.config.get('LOG_ACTIVITYPUB_TO_FILE'):
        current_app.logger.info(f"{direction} {activity_type} {activity_id} {result} {exception_message or ''}")


def _label(activity) -> str:
    if isinstance(activity, LocalAction):
        return f"local {activity.kind}"
    if isinstance(activity, dict):
        return f"{activity.get('type')} {activity.get('id')}"
    return 'raw body'
