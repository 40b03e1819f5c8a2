"""Failure classification against a FailurePolicy.

Pure functions, no I/O: the same (policy, failure) pair always yields the
same outcome, so classification is safe under any amount of concurrency.

Precedence, first match wins:
1. discard_when        -> DISCARDED
2. direct_to_dlq_when  -> SENT_TO_DLQ
3. retry_when (or the legacy ``exceptions`` bucket when retry_when is empty)
                       -> SENT_TO_RETRY
4. nothing matched     -> DISCARDED (unclassified)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from .policy import ANY_FAILURE, MatchMode

if TYPE_CHECKING:
    from collections.abc import Collection

    from .policy import FailureKind, FailurePolicy


class DispatchOutcome(StrEnum):
    """What happens to a message whose handler failed."""

    DISCARDED = "discarded"
    SENT_TO_RETRY = "sent_to_retry"
    SENT_TO_DLQ = "sent_to_dlq"


class MatchedBucket(StrEnum):
    """Which policy bucket produced the outcome."""

    DISCARD = "discard_when"
    DIRECT_TO_DLQ = "direct_to_dlq_when"
    RETRY = "retry_when"
    LEGACY_RETRY = "exceptions"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class Classification:
    """Outcome of classifying one failure.

    Attributes:
        outcome: Dispatch decision.
        bucket: Bucket that matched, NONE for the unclassified fallback.
    """

    outcome: DispatchOutcome
    bucket: MatchedBucket

    @property
    def unclassified(self) -> bool:
        """True when no bucket matched and the message falls back to discard."""
        return self.bucket is MatchedBucket.NONE


def matches(
    failure: BaseException,
    kinds: Collection[FailureKind],
    match_mode: MatchMode,
) -> bool:
    """Check whether a failure matches any kind in a bucket.

    An empty bucket never matches.

    Args:
        failure: The raised exception.
        kinds: Bucket contents.
        match_mode: EXACT compares classes by identity (ANY_FAILURE listed
            matches everything), INHERITANCE accepts subclasses.

    Example:
        matches(NumberFormatError(), {ValueError}, MatchMode.EXACT)        # False
        matches(NumberFormatError(), {ValueError}, MatchMode.INHERITANCE)  # True
    """
    if not kinds:
        return False

    failure_kind = type(failure)
    if match_mode is MatchMode.INHERITANCE:
        return any(issubclass(failure_kind, kind) for kind in kinds)
    return ANY_FAILURE in kinds or failure_kind in kinds


def classify_detailed(policy: FailurePolicy, failure: BaseException) -> Classification:
    """Classify a failure and report which bucket decided it."""
    mode = policy.match_mode

    if matches(failure, policy.discard_when, mode):
        return Classification(DispatchOutcome.DISCARDED, MatchedBucket.DISCARD)

    if matches(failure, policy.direct_to_dlq_when, mode):
        return Classification(DispatchOutcome.SENT_TO_DLQ, MatchedBucket.DIRECT_TO_DLQ)

    if policy.retry_when:
        if matches(failure, policy.retry_when, mode):
            return Classification(DispatchOutcome.SENT_TO_RETRY, MatchedBucket.RETRY)
    elif matches(failure, policy.exceptions, mode):
        return Classification(DispatchOutcome.SENT_TO_RETRY, MatchedBucket.LEGACY_RETRY)

    return Classification(DispatchOutcome.DISCARDED, MatchedBucket.NONE)


def classify(policy: FailurePolicy, failure: BaseException) -> DispatchOutcome:
    """Decide what to do with a message whose handler raised ``failure``.

    Args:
        policy: The handler's failure policy.
        failure: The exception raised by the handler.

    Returns:
        The dispatch outcome. No side effect is performed.
    """
    return classify_detailed(policy, failure).outcome


__all__ = [
    "Classification",
    "DispatchOutcome",
    "MatchedBucket",
    "classify",
    "classify_detailed",
    "matches",
]
