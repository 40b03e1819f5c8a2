"""Declarative failure policies for message handlers.

A FailurePolicy is attached to exactly one handler and says what happens to
the message when that handler raises:

- ``discard_when``: drop the message silently
- ``direct_to_dlq_when``: route straight to the dead letter queue
- ``retry_when``: send to the delayed retry queue (DLQ once attempts run out)
- ``exceptions``: legacy retry bucket, only consulted when ``retry_when`` is
  empty. Defaults to ANY_FAILURE so an unconfigured handler retries everything.

Buckets may overlap; classification precedence resolves overlaps, not the
policy. Policies are frozen, so one instance is shared by every concurrent
invocation of its handler.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

FailureKind = type[BaseException]

# Wildcard kind: matches any Exception, modeled or not, in every match mode
ANY_FAILURE: FailureKind = Exception


class MatchMode(StrEnum):
    """How a raised failure is compared with the kinds listed in a bucket.

    - EXACT: the failure's class must be listed itself (or ANY_FAILURE is listed)
    - INHERITANCE: the failure's class may be a subclass of a listed kind
    """

    EXACT = "exact"
    INHERITANCE = "inheritance"


def _as_kinds(kinds: Iterable[FailureKind] | FailureKind) -> frozenset[FailureKind]:
    if isinstance(kinds, type):
        kinds = (kinds,)
    result = frozenset(kinds)
    for kind in result:
        if not (isinstance(kind, type) and issubclass(kind, BaseException)):
            msg = f"Failure kinds must be exception classes, got {kind!r}"
            raise TypeError(msg)
    return result


@dataclass(frozen=True, slots=True)
class FailurePolicy:
    """Immutable failure policy for one message handler.

    Attributes:
        event: Event name used to resolve topology and retry configuration.
        match_mode: Exact class match or subclass-aware match.
        discard_when: Failure kinds that drop the message.
        direct_to_dlq_when: Failure kinds that go straight to the DLQ.
        retry_when: Failure kinds eligible for retry.
        exceptions: Legacy retry bucket, used only when retry_when is empty.

    Example:
        policy = FailurePolicy.build(
            "user-created",
            check_inheritance=True,
            discard_when=DuplicateUserError,
            retry_when=(ConnectionError, TimeoutError),
            direct_to_dlq_when=ValidationError,
        )
    """

    event: str
    match_mode: MatchMode = MatchMode.EXACT
    discard_when: frozenset[FailureKind] = field(default_factory=frozenset)
    direct_to_dlq_when: frozenset[FailureKind] = field(default_factory=frozenset)
    retry_when: frozenset[FailureKind] = field(default_factory=frozenset)
    exceptions: frozenset[FailureKind] = frozenset({ANY_FAILURE})

    def __post_init__(self) -> None:
        if not isinstance(self.event, str) or not self.event.strip():
            msg = "FailurePolicy.event must be a non-empty string"
            raise ValueError(msg)
        # Accept any iterable of classes, store frozensets
        for name in ("discard_when", "direct_to_dlq_when", "retry_when", "exceptions"):
            object.__setattr__(self, name, _as_kinds(getattr(self, name)))
        object.__setattr__(self, "match_mode", MatchMode(self.match_mode))

    @classmethod
    def build(
        cls,
        event: str,
        *,
        check_inheritance: bool = False,
        discard_when: Iterable[FailureKind] | FailureKind = (),
        direct_to_dlq_when: Iterable[FailureKind] | FailureKind = (),
        retry_when: Iterable[FailureKind] | FailureKind = (),
        exceptions: Iterable[FailureKind] | FailureKind = (ANY_FAILURE,),
    ) -> FailurePolicy:
        """Build a policy from keyword arguments.

        Single classes are accepted wherever a collection is expected.
        """
        return cls(
            event=event,
            match_mode=MatchMode.INHERITANCE if check_inheritance else MatchMode.EXACT,
            discard_when=_as_kinds(discard_when),
            direct_to_dlq_when=_as_kinds(direct_to_dlq_when),
            retry_when=_as_kinds(retry_when),
            exceptions=_as_kinds(exceptions),
        )

    @property
    def check_inheritance(self) -> bool:
        """True when subclasses of a listed kind also match."""
        return self.match_mode is MatchMode.INHERITANCE

    @property
    def effective_retry_when(self) -> frozenset[FailureKind]:
        """The retry bucket actually consulted: retry_when, else the legacy bucket."""
        return self.retry_when or self.exceptions

    def describe(self) -> dict[str, object]:
        """Plain representation for logging."""
        return {
            "event": self.event,
            "match_mode": self.match_mode.value,
            "discard_when": sorted(k.__name__ for k in self.discard_when),
            "direct_to_dlq_when": sorted(k.__name__ for k in self.direct_to_dlq_when),
            "retry_when": sorted(k.__name__ for k in self.retry_when),
            "exceptions": sorted(k.__name__ for k in self.exceptions),
        }


__all__ = [
    "ANY_FAILURE",
    "FailureKind",
    "FailurePolicy",
    "MatchMode",
]
