"""
Negotiation service facade.

WHAT: Caller-facing operations returning SessionView snapshots
WHY: Keep the HTTP layer thin and give every caller the same error contract
HOW: Delegate to NegotiationStateMachine, attach analytics, translate errors
"""

from typing import List, Optional

from ..core.config import Settings
from ..engine.state_machine import NegotiationStateMachine
from ..models.api_schemas import SessionView
from ..models.negotiation import (
    AIContext,
    NegotiationSession,
    Participants,
    ProductContext,
    Turn,
)
from ..utils.exceptions import EngineError, NegotiationError, RoundLimitError
from ..utils.logger import get_logger
from .analytics import AnalyticsContext

logger = get_logger(__name__)


class NegotiationService:
    """
    Start, advance, inspect and cancel negotiations.

    Domain errors propagate unchanged. A spent round budget is reported as a
    view of the expired session with a notice. Anything else becomes
    EngineError.
    """

    def __init__(
        self,
        settings: Settings,
        machine: NegotiationStateMachine,
        analytics: AnalyticsContext | None = None,
    ):
        self.settings = settings
        self.machine = machine
        self.store = machine.store
        self.analytics = analytics if analytics is not None else machine.analytics

    async def start_negotiation(
        self,
        product: ProductContext,
        message: str,
        *,
        participants: Participants | None = None,
        initial_offer: float | None = None,
        ai_context: AIContext | None = None,
        max_rounds: int | None = None,
    ) -> SessionView:
        try:
            session, turns = await self.machine.start(
                product,
                message,
                participants=participants,
                initial_offer=initial_offer,
                ai_context=ai_context,
                max_rounds=max_rounds,
            )
        except NegotiationError:
            raise
        except Exception as e:
            raise self._engine_error("start_negotiation", e) from e
        return self._view(session, turns)

    async def submit_turn(
        self,
        session_id: str,
        actor_role: str,
        message: str,
        offer: float | None = None,
    ) -> SessionView:
        try:
            session, turns = await self.machine.submit_turn(session_id, actor_role, message, offer)
        except RoundLimitError as e:
            logger.info(f"Session {session_id}: {e.message}")
            return self._view(self.store.get(session_id), notice=e.message)
        except NegotiationError:
            raise
        except Exception as e:
            raise self._engine_error("submit_turn", e, session_id) from e
        return self._view(session, turns)

    async def cancel_negotiation(self, session_id: str) -> SessionView:
        try:
            session = await self.machine.cancel(session_id)
        except NegotiationError:
            raise
        except Exception as e:
            raise self._engine_error("cancel_negotiation", e, session_id) from e
        return self._view(session)

    async def get_session(self, session_id: str) -> SessionView:
        return self._view(self.store.get(session_id))

    async def create_branch(
        self,
        session_id: str,
        name: str,
        parent: str | None = None,
        fork_point: int | None = None,
        branch_type: str = "scenario",
    ) -> SessionView:
        try:
            session = await self.machine.create_branch(
                session_id, name, parent=parent, fork_point=fork_point, branch_type=branch_type
            )
        except NegotiationError:
            raise
        except Exception as e:
            raise self._engine_error("create_branch", e, session_id) from e
        return self._view(session)

    async def switch_branch(self, session_id: str, name: str) -> SessionView:
        try:
            session = await self.machine.switch_branch(session_id, name)
        except NegotiationError:
            raise
        except Exception as e:
            raise self._engine_error("switch_branch", e, session_id) from e
        return self._view(session)

    # ---------- helpers ----------

    def _view(
        self,
        session: NegotiationSession,
        new_turns: Optional[List[Turn]] = None,
        notice: str | None = None,
    ) -> SessionView:
        health_score = None
        if self.analytics is not None and session.history:
            health_score = self.analytics.analytics.health_score(session)

        return SessionView.from_session(
            session,
            view_turns=self.settings.SESSION_VIEW_TURNS,
            new_turns=new_turns,
            health_score=health_score,
            notice=notice,
        )

    @staticmethod
    def _engine_error(operation: str, exc: Exception, session_id: str | None = None) -> EngineError:
        logger.error(f"{operation} failed for session {session_id}: {exc}", exc_info=True)
        return EngineError(
            f"Internal error during {operation}",
            details={"session_id": session_id, "error": f"{type(exc).__name__}: {exc}"},
        )
