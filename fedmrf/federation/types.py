"""Type definitions for the federation pipeline"""
from __future__ import annotations
from typing import (
    Dict, List, Optional, Union, TypedDict, Any, Mapping, Tuple, NotRequired
)
from dataclasses import dataclass, field
from enum import Enum, auto

# Type aliases
HostPattern = str
RuleEntry = Tuple[HostPattern, str]


# Enums
class Priority(Enum):
    """Message priority levels for the outbound queue"""
    URGENT = "urgent"    # Votes, follows, unfollows
    NORMAL = "normal"    # Posts, comments, profile updates
    BULK = "bulk"       # Announces, deletes


class PipelineState(Enum):
    """Lifecycle of one activity inside the pipeline"""
    RECEIVED = auto()
    VALIDATED = auto()
    POLICY_EVALUATED = auto()
    COMMITTED = auto()
    REJECTED = auto()
    COMMIT_FAILED = auto()


# TypedDicts for JSON structures
# ActivityPub object structure (functional form: '@context' is not a valid identifier)
ActivityObject = TypedDict('ActivityObject', {
    'id': str,
    'type': str,
    'actor': str,
    'object': Union[str, 'ActivityObject', List[Union[str, 'ActivityObject']]],
    'target': NotRequired[str],
    'to': NotRequired[List[str]],
    'cc': NotRequired[List[str]],
    'audience': NotRequired[str],
    'content': NotRequired[str],
    'name': NotRequired[str],
    'summary': NotRequired[str],
    'inReplyTo': NotRequired[str],
    'published': NotRequired[str],
    'updated': NotRequired[str],
    'url': NotRequired[Union[str, List[Dict[str, Any]]]],
    'attributedTo': NotRequired[str],
    'sensitive': NotRequired[bool],
    'tag': NotRequired[List[Dict[str, Any]]],
    'attachment': NotRequired[List[Dict[str, Any]]],
    '@context': NotRequired[Union[str, List[str], Dict[str, Any]]],
}, total=False)


class StreamMessage(TypedDict):
    """Redis Stream message structure"""
    type: str           # Message type (e.g., 'outbox.Update')
    data: str          # JSON string of the activity
    priority: str      # Priority level
    attempts: int      # Number of processing attempts
    timestamp: str     # ISO format timestamp
    request_id: NotRequired[str]  # Optional request tracking ID


# Exception types
class FederationError(Exception):
    """Base exception for federation errors"""
    pass


class ValidationError(FederationError):
    """Raised when an activity or local action is structurally invalid. Never retried."""
    def __init__(self, message: str, errors: Optional[Mapping[str, Any]] = None, reason: str = 'invalid'):
        super().__init__(message)
        self.message = message
        self.errors = dict(errors or {})
        self.reason = reason


class PolicyRejection(FederationError):
    """Raised by a policy to refuse an activity. The reason is shown verbatim in moderation logs."""
    def __init__(self, reason: str, policy: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.policy = policy


class PersistenceError(FederationError):
    """Raised when the commit step fails; the caller's queue may retry"""
    retryable = True


class ConfigurationError(FederationError):
    """A malformed configuration entry. Logged and skipped, never raised out of the pipeline."""
    pass


class BuildError(FederationError):
    """Raised when a local action cannot be turned into an activity"""
    pass


class DuplicateActivity(FederationError):
    """Raised when an activity would create a record that already exists"""
    pass


class PipelineCancelled(FederationError):
    """Raised when the caller abandons an invocation before the commit step"""
    pass


class ObjectNotFound(FederationError):
    """Raised when an identifier lookup finds nothing"""
    pass


class FetchError(FederationError):
    """Raised when a remote object could not be retrieved"""
    pass


# Dataclasses
@dataclass(frozen=True, slots=True)
class SideEffectReceipt:
    """What the commit step did"""
    activity_id: str
    record_id: Optional[int] = None
    object_id: Optional[str] = None
    noop: bool = False
    queued: Tuple[int, ...] = ()
    local_changes: Tuple[str, ...] = ()
    effects: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one Pipeline.process call"""
    state: PipelineState
    activity: Optional[Dict[str, Any]] = None
    receipt: Optional[SideEffectReceipt] = None
    error: Optional[FederationError] = None
    history: Tuple[PipelineState, ...] = field(default=())

    @property
    def ok(self) -> bool:
        return self.state == PipelineState.COMMITTED

    @property
    def noop(self) -> bool:
        return self.receipt is not None and self.receipt.noop

    @property
    def reason(self) -> Optional[str]:
        if self.error is None:
            return None
        return getattr(self.error, 'reason', None) or str(self.error)


def get_activity_priority(activity_type: str) -> Priority:
    """Determine priority based on activity type"""
    urgent_types = {'Like', 'Dislike', 'Follow', 'Accept', 'Reject', 'Undo'}
    bulk_types = {'Announce', 'Delete'}

    if activity_type in urgent_types:
        return Priority.URGENT
    elif activity_type in bulk_types:
        return Priority.BULK
    else:
        return Priority.NORMAL
