"""
Negotiation state machine.

WHAT: Drives a session through start, human turns, AI turns and termination
WHY: Every rule about rounds, bounds and terminal states lives in one place
HOW: Per-session asyncio locks; human turn is classified and stored, the AI
     turn comes from composer -> completion -> interpreter, with a policy
     fallback when the LLM fails
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List, Tuple

from ..core.config import Settings
from ..core.conversation_store import ConversationStore
from ..llm.completion import CompletionClient
from ..llm.types import GenerationConfig
from ..models.negotiation import (
    AIContext,
    BranchType,
    CurrentOffer,
    NegotiationSession,
    Participants,
    ProductContext,
    SessionState,
    Turn,
    TurnAction,
    TurnActor,
    TurnOffer,
)
from ..services.analytics import AnalyticsContext
from ..utils.exceptions import (
    ConcurrentModificationError,
    EngineError,
    InvalidStateError,
    RoundLimitError,
    SessionNotFoundError,
    ValidationException,
)
from ..utils.logger import get_logger
from .fallback import default_text, fallback_counter
from .pricing import clamp_to_bounds, is_acceptable
from .prompt_composer import ComposedPrompt, PromptComposer
from .response_interpreter import PRICE_EPSILON, InterpretedResponse, ResponseInterpreter

logger = get_logger(__name__)


class NegotiationStateMachine:
    """Applies negotiation rules to sessions held in a ConversationStore."""

    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        completion: CompletionClient,
        *,
        analytics: AnalyticsContext | None = None,
        composer: PromptComposer | None = None,
        interpreter: ResponseInterpreter | None = None,
        generation: GenerationConfig | None = None,
    ):
        self.settings = settings
        self.store = store
        self.completion = completion
        self.analytics = analytics
        self.composer = composer or PromptComposer(settings, analytics)
        self.interpreter = interpreter or ResponseInterpreter()
        self.generation = generation or GenerationConfig(
            temperature=settings.LLM_DEFAULT_TEMPERATURE,
            max_tokens=settings.LLM_DEFAULT_MAX_TOKENS,
        )
        self._locks: Dict[str, asyncio.Lock] = {}
        store.add_eviction_listener(self.release)

    # ---------- locking ----------

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def _session_lock(self, session_id: str):
        """
        Serialize mutations of one session.

        With the fail_fast policy a held lock raises immediately instead of
        queueing behind the running turn.
        """
        lock = self._lock_for(session_id)
        if self.settings.CONCURRENCY_POLICY == "fail_fast" and lock.locked():
            raise ConcurrentModificationError(session_id)
        try:
            async with lock:
                yield
        finally:
            if self._is_closed(session_id):
                self.release(session_id)

    def _is_closed(self, session_id: str) -> bool:
        try:
            return self.store.get(session_id).is_terminal
        except SessionNotFoundError:
            return True

    def release(self, session_id: str) -> None:
        """
        Drop the lock and analytics history kept for a session.

        Called once the session is terminal and when the store evicts it.
        A lock still held by a running turn is left for that turn to drop.
        """
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            self._locks.pop(session_id, None)
        if self.analytics:
            self.analytics.forget(session_id)

    # ---------- operations ----------

    async def start(
        self,
        product: ProductContext,
        message: str,
        *,
        participants: Participants | None = None,
        initial_offer: float | None = None,
        ai_context: AIContext | None = None,
        max_rounds: int | None = None,
    ) -> Tuple[NegotiationSession, List[Turn]]:
        """
        Open a negotiation with the human's first message.

        The session is created Initiated, the opening turn is stored, the
        session moves to InProgress and the AI answers, completing round 1.
        """
        if initial_offer is not None and initial_offer < 0:
            raise ValidationException("initial_offer must be >= 0")

        session = self.store.create(product, participants, ai_context, max_rounds)

        async with self._session_lock(session.id):
            human_turn = self._record_human_turn(session, message, initial_offer)
            self.store.transition(session.id, SessionState.IN_PROGRESS)
            ai_turns = await self._respond(session.id, human_turn)

        return self.store.get(session.id), [human_turn] + ai_turns

    async def submit_turn(
        self,
        session_id: str,
        actor_role: str,
        message: str,
        offer: float | None = None,
    ) -> Tuple[NegotiationSession, List[Turn]]:
        """
        Apply one human turn and produce the AI's answer.

        Raises:
            SessionNotFoundError: Unknown session
            InvalidStateError: Session already terminal
            RoundLimitError: Round budget spent and the standing AI offer was not
                accepted; the session is now Expired
            ValidationException: Wrong actor role or negative offer
            ConcurrentModificationError: fail_fast policy and a turn is running
        """
        self.store.get(session_id)

        async with self._session_lock(session_id):
            session = self.store.get(session_id)
            if session.is_terminal:
                raise InvalidStateError(session_id, session.state.value)
            if actor_role != session.human_role:
                raise ValidationException(
                    f"actor_role must be '{session.human_role}' for this session",
                    field_errors=[{"field": "actor_role", "message": "does not match initiator role"}],
                )
            if offer is not None and offer < 0:
                raise ValidationException(
                    "offer must be >= 0",
                    field_errors=[{"field": "offer", "message": "negative amount"}],
                )

            classification = self.interpreter.classify_human(message, session, offer)

            # The standing offer can still be taken once the rounds are spent
            if self._is_exact_acceptance(session, classification):
                accepted = session.current_offer.amount
                human_turn = self.store.append(session_id, self._human_turn(session, classification))
                self.store.transition(session_id, SessionState.ACCEPTED, final_price=accepted)
                logger.info(f"Session {session_id}: human accepted AI offer {accepted}")
                return self.store.get(session_id), [human_turn]

            if session.round >= session.max_rounds:
                self.store.transition(session_id, SessionState.EXPIRED)
                raise RoundLimitError(session_id, session.max_rounds)

            if classification.action == TurnAction.ACCEPT:
                # Accepting something other than the standing AI offer is a counter
                classification = InterpretedResponse(
                    action=TurnAction.COUNTER,
                    offer_amount=classification.offer_amount,
                    confidence=classification.confidence,
                    message=classification.message,
                    warnings=classification.warnings,
                    sanitized=classification.sanitized,
                )

            human_turn = self._store_human_turn(session, classification)
            ai_turns = await self._respond(session_id, human_turn)

        return self.store.get(session_id), [human_turn] + ai_turns

    async def cancel(self, session_id: str) -> NegotiationSession:
        """
        Cancel a session. Idempotent on terminal sessions.

        Does not wait for the session lock; an in-flight AI turn is
        discarded when it finds the session terminal.
        """
        session = self.store.get(session_id)
        if session.is_terminal:
            return session
        session = self.store.transition(session_id, SessionState.CANCELLED)
        self.release(session_id)
        return session

    async def create_branch(
        self,
        session_id: str,
        name: str,
        parent: str | None = None,
        fork_point: int | None = None,
        branch_type: BranchType = "scenario",
    ) -> NegotiationSession:
        async with self._session_lock(session_id):
            self.store.create_branch(session_id, name, parent=parent, fork_point=fork_point, branch_type=branch_type)
            return self.store.get(session_id)

    async def switch_branch(self, session_id: str, name: str) -> NegotiationSession:
        async with self._session_lock(session_id):
            return self.store.switch_branch(session_id, name)

    # ---------- human side ----------

    @staticmethod
    def _is_exact_acceptance(session: NegotiationSession, classification: InterpretedResponse) -> bool:
        current = session.current_offer
        return (
            classification.action == TurnAction.ACCEPT
            and current is not None
            and current.proposed_by == "ai"
            and classification.offer_amount is not None
            and abs(classification.offer_amount - current.amount) < PRICE_EPSILON
        )

    @staticmethod
    def _human_turn(session: NegotiationSession, classification: InterpretedResponse) -> Turn:
        amount = classification.offer_amount
        return Turn(
            sequence=0,
            actor=TurnActor(session.human_role),
            raw_text=classification.message,
            action=classification.action,
            offer=TurnOffer(amount=amount) if amount is not None else None,
            confidence=classification.confidence,
            warnings=classification.warnings,
        )

    def _record_human_turn(self, session: NegotiationSession, message: str, offer: float | None) -> Turn:
        classification = self.interpreter.classify_human(message, session, offer)
        return self._store_human_turn(session, classification)

    def _store_human_turn(self, session: NegotiationSession, classification: InterpretedResponse) -> Turn:
        turn = self.store.append(session.id, self._human_turn(session, classification))
        if classification.offer_amount is not None:
            self.store.update_offer(session.id, CurrentOffer(
                amount=classification.offer_amount,
                currency=session.product.currency,
                proposed_by=session.human_role,
            ))
        return turn

    # ---------- AI side ----------

    async def _respond(self, session_id: str, human_turn: Turn) -> List[Turn]:
        """Produce and store the AI turn answering `human_turn`."""
        session = self.store.get(session_id)
        round_before = session.round

        insights = self.analytics.insights_for(session) if self.analytics else None
        prompt = self.composer.compose(session, human_turn, insights)

        try:
            completion = await self.completion.complete(prompt, self.generation)
        except Exception as e:
            logger.warning(f"Session {session_id}: LLM unavailable ({type(e).__name__}: {e}); using policy fallback")
            return self._fallback_turn(session_id, prompt, f"{type(e).__name__}: {e}", round_before)

        session = self.store.get(session_id)
        if session.is_terminal:
            logger.info(f"Session {session_id} became {session.state.value} during LLM call; AI turn discarded")
            return []

        interpretation = self.interpreter.interpret(completion.text, session)
        return [self._apply_ai_decision(session, interpretation, prompt, completion.latency_ms, round_before)]

    def _apply_ai_decision(
        self,
        session: NegotiationSession,
        interpretation: InterpretedResponse,
        prompt: ComposedPrompt,
        latency_ms: float,
        round_before: int,
    ) -> Turn:
        product = session.product
        action = interpretation.action
        amount = interpretation.offer_amount
        warnings = list(interpretation.warnings)
        final_price: float | None = None

        if action == TurnAction.ACCEPT:
            current = session.current_offer
            if current is not None and current.proposed_by != "ai":
                amount = current.amount
            if amount is None or not is_acceptable(amount, product, session.ai_role):
                warnings.append("acceptance outside walk-away price downgraded to counter")
                action = TurnAction.COUNTER
                amount = prompt.suggested_counter
            else:
                final_price = clamp_to_bounds(amount, product)
                amount = final_price

        if action == TurnAction.COUNTER:
            if amount is None:
                amount = prompt.suggested_counter
            clamped = clamp_to_bounds(amount, product)
            if clamped != amount:
                warnings.append(f"counter {amount} clamped to {clamped}")
            amount = clamped

        if action in (TurnAction.REJECT, TurnAction.CONTINUE):
            amount = None

        message = interpretation.message or default_text(action, amount, product.currency)
        turn = Turn(
            sequence=0,
            actor=TurnActor.AI,
            raw_text=message,
            action=action,
            offer=TurnOffer(amount=amount, reasoning=interpretation.reasoning) if amount is not None else None,
            confidence=interpretation.confidence,
            scenario=prompt.scenario.value,
            warnings=tuple(warnings),
            latency_ms=latency_ms,
        )
        stored = self.store.append(session.id, turn, advance_round=True, expected_round=round_before)

        if action == TurnAction.ACCEPT:
            self.store.transition(session.id, SessionState.ACCEPTED, final_price=final_price)
        elif action == TurnAction.REJECT:
            self.store.transition(session.id, SessionState.REJECTED)
        elif action == TurnAction.COUNTER:
            self.store.update_offer(session.id, CurrentOffer(
                amount=amount, currency=product.currency, proposed_by="ai",
            ))

        logger.info(
            f"Session {session.id} round {round_before + 1}: AI {action.value}"
            f"{f' {amount}' if amount is not None else ''} (confidence {interpretation.confidence})"
        )
        return stored

    def _fallback_turn(self, session_id: str, prompt: ComposedPrompt, reason: str, round_before: int) -> List[Turn]:
        session = self.store.get(session_id)
        if session.is_terminal:
            return []

        try:
            price, text = fallback_counter(session)
        except ValueError as e:
            raise EngineError(str(e), details={"session_id": session_id}) from e

        turn = Turn(
            sequence=0,
            actor=TurnActor.AI,
            raw_text=text,
            action=TurnAction.COUNTER,
            offer=TurnOffer(amount=price, reasoning="pricing policy fallback"),
            confidence=0.0,
            degraded=True,
            scenario=prompt.scenario.value,
            warnings=(f"llm unavailable: {reason}",),
        )
        stored = self.store.append(session_id, turn, advance_round=True, expected_round=round_before)
        self.store.update_offer(session_id, CurrentOffer(
            amount=price, currency=session.product.currency, proposed_by="ai",
        ))
        return [stored]
