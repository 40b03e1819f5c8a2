"""Handler guard: catch handler failures and hand them to the DispatchEngine.

Wrap each consumer handler once, at import/startup time. The guard registers
the handler's FailurePolicy and, whenever the handler raises, forwards the
failure and the message to the engine. The failure itself never escapes, so
the broker acknowledges the original delivery; the engine alone decides
whether it is dropped, retried or dead-lettered.

FastStream passes handler parameters by keyword and a handler may only ask
for the decoded body, so the consumed message is read from the broker's
context (the ``message`` entry FastStream sets while a handler runs). Without
a context, the value bound to the handler's first parameter is used.

Example:
    guard = RetryDlqGuard(engine, context=broker.context)

    @broker.subscriber("accounts.user-created")
    @guard.enable(
        "user-created",
        discard_when=DuplicateUserError,
        direct_to_dlq_when=ValidationError,
        retry_when=(ConnectionError, TimeoutError),
    )
    async def on_user_created(msg: RabbitMessage) -> None:
        ...
"""

from __future__ import annotations

import functools
import inspect
import logging
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

from .policy import ANY_FAILURE, FailurePolicy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from faststream import ContextRepo

    from .engine import DispatchEngine
    from .policy import FailureKind

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def handler_identifier(handler: Callable[..., Any]) -> str:
    """Default identifier for a handler: ``<module>.<qualname>``."""
    module = getattr(handler, "__module__", None) or "<unknown>"
    qualname = getattr(handler, "__qualname__", None) or repr(handler)
    return f"{module}.{qualname}"


class RetryDlqGuard:
    """Decorator factory that puts handlers under a FailurePolicy.

    Attributes:
        engine: Engine receiving handler failures.
        context: FastStream ContextRepo holding the message being consumed,
            usually ``broker.context``.
        validate_events: Check at registration time that the policy's event
            is configured, instead of discovering it on the first failure.
    """

    def __init__(
        self,
        engine: DispatchEngine,
        *,
        context: ContextRepo | None = None,
        validate_events: bool = False,
    ) -> None:
        self.engine = engine
        self.context = context
        self.validate_events = validate_events

    def consumed_message(self, signature: inspect.Signature, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        """The broker message a failed invocation was handling, None if unknown."""
        if self.context is not None:
            message = self.context.get_local("message")
            if message is not None:
                return message

        try:
            bound = signature.bind_partial(*args, **kwargs)
        except TypeError:
            return None
        return next(iter(bound.arguments.values()), None)

    def __call__(
        self,
        policy: FailurePolicy,
        *,
        handler_id: str | None = None,
    ) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T | None]]]:
        """Decorate a handler with an explicit policy."""

        def decorator(handler: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T | None]]:
            return self.protect(handler, policy, handler_id=handler_id)

        return decorator

    def enable(
        self,
        event: str,
        *,
        check_inheritance: bool = False,
        discard_when: Iterable[FailureKind] | FailureKind = (),
        direct_to_dlq_when: Iterable[FailureKind] | FailureKind = (),
        retry_when: Iterable[FailureKind] | FailureKind = (),
        exceptions: Iterable[FailureKind] | FailureKind = (ANY_FAILURE,),
        handler_id: str | None = None,
    ) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T | None]]]:
        """Decorate a handler, building its policy from keyword arguments.

        See FailurePolicy.build for the meaning of each bucket.
        """
        policy = FailurePolicy.build(
            event,
            check_inheritance=check_inheritance,
            discard_when=discard_when,
            direct_to_dlq_when=direct_to_dlq_when,
            retry_when=retry_when,
            exceptions=exceptions,
        )
        return self(policy, handler_id=handler_id)

    def protect(
        self,
        handler: Callable[P, Awaitable[T]],
        policy: FailurePolicy,
        *,
        handler_id: str | None = None,
    ) -> Callable[P, Awaitable[T | None]]:
        """Register ``policy`` for ``handler`` and return the guarded handler.

        Raises:
            TypeError: If the handler is not a coroutine function.
            ValueError: If a policy is already registered for the handler.
            ConfigurationMissingError: With validate_events, if the event is unknown.
        """
        if not inspect.iscoroutinefunction(handler):
            msg = f"Guarded handlers must be async functions, got {handler!r}"
            raise TypeError(msg)

        resolved_id = handler_id or handler_identifier(handler)

        if self.validate_events:
            self.engine.events.resolve(policy.event)

        self.engine.policies.register(resolved_id, policy)
        engine = self.engine
        signature = inspect.signature(handler)

        @functools.wraps(handler)
        async def guarded(*args: P.args, **kwargs: P.kwargs) -> T | None:
            try:
                return await handler(*args, **kwargs)
            except Exception as exc:
                message = self.consumed_message(signature, args, kwargs)
                await engine.handle_failure(resolved_id, exc, message)
                return None

        guarded.handler_id = resolved_id  # type: ignore[attr-defined]
        return guarded


__all__ = ["RetryDlqGuard", "handler_identifier"]
