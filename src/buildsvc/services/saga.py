"""Saga bookkeeping for multi-step commands.

A command moves through

``received -> authorized -> precondition_checked -> backend_invoked ->
local_committed -> recorded``

and ends in ``rejected`` if any gate fails before the backend was called,
or in ``partially_applied`` if the backend call succeeded but the local
commit did not. The second case cannot be compensated automatically; it is
logged at ERROR and surfaced to the caller as
:class:`~buildsvc.exceptions.PartiallyAppliedError`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from buildsvc.backend.client import BackendOutcome
from buildsvc.constants import SagaState
from buildsvc.exceptions import BackendError, PartiallyAppliedError

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session

    from buildsvc.backend.client import BackendResult
    from buildsvc.context import Actor, RequestContext

__all__ = ["Saga"]

_ORDER = [
    SagaState.RECEIVED,
    SagaState.AUTHORIZED,
    SagaState.PRECONDITION_CHECKED,
    SagaState.BACKEND_INVOKED,
    SagaState.LOCAL_COMMITTED,
    SagaState.RECORDED,
]

_TERMINAL = {SagaState.RECORDED, SagaState.REJECTED, SagaState.PARTIALLY_APPLIED}


class Saga:
    """
    State of one command execution.

    Parameters
    ----------
    name : str
        Verb or operation name, used in logs
    actor : Actor
        Caller
    context : RequestContext
        Request id and comment
    session : Session, optional
        Session of the running step; bound later with :meth:`bind`

    Examples
    --------
    >>> saga = Saga("delete_project", actor, context, session)
    >>> saga.advance(SagaState.AUTHORIZED)
    >>> saga.invoke(lambda: gateway.delete(path))
    >>> saga.commit()
    """

    def __init__(
        self,
        name: str,
        actor: Actor,
        context: RequestContext,
        session: Session | None = None,
    ) -> None:
        self.name = name
        self.actor = actor
        self.context = context
        self.session = session
        self.state = SagaState.RECEIVED
        self.trail: list[SagaState] = [SagaState.RECEIVED]
        self.backend_calls = 0

    def bind(self, session: Session) -> None:
        self.session = session

    @property
    def finished(self) -> bool:
        return self.state in _TERMINAL

    def advance(self, state: SagaState) -> None:
        """
        Move forward to ``state``; moving backwards is a programming error.
        """
        if state is self.state:
            return
        if self.state in _TERMINAL:
            msg = f"saga {self.name} already finished in state {self.state.value}"
            raise RuntimeError(msg)
        if _ORDER.index(state) < _ORDER.index(self.state):
            msg = f"saga {self.name} cannot move from {self.state.value} to {state.value}"
            raise RuntimeError(msg)
        logger.debug(f"[{self.context.request_id}] {self.name}: {self.state.value} -> {state.value}")
        self.state = state
        self.trail.append(state)

    def checkpoint(self, label: str) -> None:
        """Commit an intermediate local step that must survive later failures."""
        self.session.commit()
        logger.debug(f"[{self.context.request_id}] {self.name}: checkpoint {label}")

    def invoke(
        self, call: Callable[[], BackendResult], allow_not_found: bool = False
    ) -> BackendResult:
        """
        Run one backend call.

        Parameters
        ----------
        call : Callable[[], BackendResult]
            Gateway call to run
        allow_not_found : bool, optional
            Return not_found results instead of raising, by default False

        Raises
        ------
        BackendError
            On transport errors, and on not_found unless allowed
        """
        if _ORDER.index(self.state) < _ORDER.index(SagaState.PRECONDITION_CHECKED):
            self.advance(SagaState.PRECONDITION_CHECKED)
        result = call()
        if result.outcome is BackendOutcome.TRANSPORT_ERROR:
            msg = f"backend call failed: {result.detail}"
            raise BackendError(msg)
        if result.outcome is BackendOutcome.NOT_FOUND and not allow_not_found:
            msg = f"backend object not found: {result.detail}"
            raise BackendError(msg)
        self.backend_calls += 1
        self.advance(SagaState.BACKEND_INVOKED)
        return result

    def commit(self) -> None:
        """
        Commit the local transaction.

        Raises
        ------
        PartiallyAppliedError
            The commit failed after the backend was already mutated
        """
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            if self.state is SagaState.BACKEND_INVOKED:
                self.state = SagaState.PARTIALLY_APPLIED
                self.trail.append(self.state)
                logger.error(
                    f"[{self.context.request_id}] {self.name}: backend changed but "
                    f"local commit failed: {exc}"
                )
                msg = f"{self.name}: backend was updated but the local commit failed"
                raise PartiallyAppliedError(msg) from exc
            raise
        self.advance(SagaState.LOCAL_COMMITTED)

    def authorized(self) -> None:
        self._reach(SagaState.AUTHORIZED)

    def precondition_checked(self) -> None:
        self._reach(SagaState.PRECONDITION_CHECKED)

    def _reach(self, state: SagaState) -> None:
        # gates passed earlier in the same saga are not re-entered
        if self.state in _ORDER and _ORDER.index(self.state) >= _ORDER.index(state):
            return
        self.advance(state)

    def recorded(self) -> None:
        self.advance(SagaState.RECORDED)

    def reject(self, reason: object) -> None:
        """Mark the saga rejected if no backend call has happened yet."""
        if self.state in _TERMINAL:
            return
        if _ORDER.index(self.state) >= _ORDER.index(SagaState.BACKEND_INVOKED):
            logger.warning(
                f"[{self.context.request_id}] {self.name}: failed after backend call: {reason}"
            )
            return
        logger.info(f"[{self.context.request_id}] {self.name}: rejected: {reason}")
        self.state = SagaState.REJECTED
        self.trail.append(self.state)
