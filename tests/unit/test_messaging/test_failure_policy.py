"""Tests for FailurePolicy construction and normalization."""

from __future__ import annotations

import dataclasses

import pytest

from rabbit_retry.infra.messaging.dlq import ANY_FAILURE, FailurePolicy, MatchMode


class NumberFormatError(ValueError):
    """Malformed number, a ValueError subclass."""


@pytest.mark.unit
class TestFailurePolicyDefaults:
    """Default values of a bare policy."""

    def test_defaults(self) -> None:
        policy = FailurePolicy("user-created")

        assert policy.event == "user-created"
        assert policy.match_mode is MatchMode.EXACT
        assert policy.check_inheritance is False
        assert policy.discard_when == frozenset()
        assert policy.direct_to_dlq_when == frozenset()
        assert policy.retry_when == frozenset()
        assert policy.exceptions == frozenset({ANY_FAILURE})

    def test_legacy_bucket_is_used_when_retry_when_is_empty(self) -> None:
        policy = FailurePolicy("user-created")

        assert policy.effective_retry_when == frozenset({ANY_FAILURE})

    def test_retry_when_replaces_legacy_bucket(self) -> None:
        policy = FailurePolicy.build("user-created", retry_when=ConnectionError)

        assert policy.effective_retry_when == frozenset({ConnectionError})


@pytest.mark.unit
class TestFailurePolicyBuild:
    """FailurePolicy.build keyword surface."""

    def test_single_classes_are_wrapped(self) -> None:
        policy = FailurePolicy.build(
            "user-created",
            discard_when=KeyError,
            direct_to_dlq_when=ValueError,
            retry_when=(ConnectionError, TimeoutError),
        )

        assert policy.discard_when == frozenset({KeyError})
        assert policy.direct_to_dlq_when == frozenset({ValueError})
        assert policy.retry_when == frozenset({ConnectionError, TimeoutError})

    def test_check_inheritance_selects_match_mode(self) -> None:
        assert FailurePolicy.build("e", check_inheritance=True).match_mode is MatchMode.INHERITANCE
        assert FailurePolicy.build("e", check_inheritance=False).match_mode is MatchMode.EXACT

    def test_empty_legacy_bucket_is_allowed(self) -> None:
        policy = FailurePolicy.build("user-created", exceptions=())

        assert policy.exceptions == frozenset()

    def test_match_mode_accepts_string_value(self) -> None:
        policy = FailurePolicy("user-created", match_mode="inheritance")

        assert policy.match_mode is MatchMode.INHERITANCE
        assert policy.check_inheritance is True

    def test_constructor_normalizes_iterables(self) -> None:
        policy = FailurePolicy("user-created", retry_when=[NumberFormatError, NumberFormatError])

        assert isinstance(policy.retry_when, frozenset)
        assert policy.retry_when == frozenset({NumberFormatError})


@pytest.mark.unit
class TestFailurePolicyValidation:
    """Invalid policies are rejected at construction time."""

    @pytest.mark.parametrize("event", ["", "   "])
    def test_blank_event_rejected(self, event: str) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            FailurePolicy(event)

    def test_non_exception_kind_rejected(self) -> None:
        with pytest.raises(TypeError, match="exception classes"):
            FailurePolicy.build("user-created", retry_when=(str,))

    def test_instance_instead_of_class_rejected(self) -> None:
        with pytest.raises(TypeError):
            FailurePolicy.build("user-created", discard_when=(ValueError("boom"),))

    def test_invalid_match_mode_rejected(self) -> None:
        with pytest.raises(ValueError):
            FailurePolicy("user-created", match_mode="fuzzy")


@pytest.mark.unit
class TestFailurePolicyImmutability:
    """Policies are shared between concurrent invocations and never change."""

    def test_fields_cannot_be_reassigned(self) -> None:
        policy = FailurePolicy("user-created")

        with pytest.raises(dataclasses.FrozenInstanceError):
            policy.event = "other"  # type: ignore[misc]

    def test_equal_policies_hash_equal(self) -> None:
        first = FailurePolicy.build("user-created", retry_when=(ConnectionError, TimeoutError))
        second = FailurePolicy.build("user-created", retry_when=[TimeoutError, ConnectionError])

        assert first == second
        assert hash(first) == hash(second)

    def test_describe_lists_kind_names(self) -> None:
        policy = FailurePolicy.build(
            "user-created",
            check_inheritance=True,
            discard_when=KeyError,
            retry_when=(TimeoutError, ConnectionError),
        )

        assert policy.describe() == {
            "event": "user-created",
            "match_mode": "inheritance",
            "discard_when": ["KeyError"],
            "direct_to_dlq_when": [],
            "retry_when": ["ConnectionError", "TimeoutError"],
            "exceptions": ["Exception"],
        }
