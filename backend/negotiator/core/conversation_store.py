"""
Conversation store for negotiation sessions.

WHAT: Single owner of session state: create, read, append, branch, evict
WHY: Coordinate the in-memory hot tier with optional durable storage
HOW: CacheContext for hot reads, read-through on miss, write-through on
     every mutation, background Timer for idle eviction
"""

import threading
from datetime import datetime, timedelta
from typing import Callable, List

from .cache import CacheContext
from .config import Settings
from .persistence import SessionPersistence
from ..models.negotiation import (
    AIContext,
    Branch,
    BranchEvent,
    BranchType,
    CurrentOffer,
    NegotiationSession,
    Participants,
    ProductContext,
    SessionState,
    Turn,
    TurnActor,
    utcnow,
)
from ..utils.exceptions import (
    BranchNotFoundError,
    ConcurrentModificationError,
    InvalidStateError,
    SessionNotFoundError,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ConversationStore:
    """
    Manage session storage.

    WHAT: Central hub for session CRUD, turn appends and branches
    WHY: Keep every mutation atomic and durable in one place
    HOW: Methods run under the cache lock and persist before returning
    """

    def __init__(
        self,
        settings: Settings,
        cache: CacheContext | None = None,
        persistence: SessionPersistence | None = None,
    ):
        self.settings = settings
        self.cache = cache or CacheContext(timedelta(minutes=settings.SESSION_IDLE_TTL_MINUTES))
        self.persistence = persistence
        self._cleanup_thread: threading.Timer | None = None
        self._cleanup_stopped = threading.Event()
        self._eviction_listeners: List[Callable[[str], None]] = []

    # ---------- lifecycle of the cleanup thread ----------

    def start_cleanup(self):
        """
        Start background thread for idle eviction.

        WHAT: Periodic eviction of idle sessions from the hot tier
        WHY: Prevent memory growth from abandoned negotiations
        HOW: threading.Timer rescheduling itself every cleanup interval
        """
        interval = self.settings.SESSION_CLEANUP_INTERVAL_SECONDS
        self._cleanup_stopped.clear()

        def cleanup_task():
            if self._cleanup_stopped.is_set():
                return
            try:
                self.evict_idle()
            except Exception as e:
                logger.error(f"Session cleanup failed: {e}", exc_info=True)
            schedule()

        def schedule():
            if self._cleanup_stopped.is_set():
                return
            self._cleanup_thread = threading.Timer(interval, cleanup_task)
            self._cleanup_thread.daemon = True
            self._cleanup_thread.start()

        schedule()
        logger.info(f"Started session cleanup thread (interval: {interval}s)")

    def stop_cleanup(self):
        self._cleanup_stopped.set()
        if self._cleanup_thread is not None:
            self._cleanup_thread.cancel()
            self._cleanup_thread = None

    # ---------- reads and writes ----------

    def create(
        self,
        product: ProductContext,
        participants: Participants | None = None,
        ai_context: AIContext | None = None,
        max_rounds: int | None = None,
    ) -> NegotiationSession:
        """Create and persist a new session in the Initiated state."""
        session = NegotiationSession(
            product=product,
            participants=participants or Participants(),
            ai_context=ai_context or AIContext(),
            max_rounds=max_rounds or self.settings.MAX_NEGOTIATION_ROUNDS,
        )
        with self.cache.lock:
            self.cache.put(session)
            self._write_through(session)
        logger.info(f"Created session {session.id} for '{product.title}' (max_rounds={session.max_rounds})")
        return session

    def get(self, session_id: str) -> NegotiationSession:
        """
        Get a session, reading through to durable storage on a cache miss.

        Raises:
            SessionNotFoundError: If no tier knows the session
        """
        with self.cache.lock:
            session = self.cache.get(session_id)
            if session is not None:
                return session

            if self.persistence is not None:
                session = self.persistence.load(session_id)
                if session is not None:
                    self.cache.put(session)
                    logger.debug(f"Loaded session {session_id} from durable storage")
                    return session

        raise SessionNotFoundError(session_id)

    def save(self, session: NegotiationSession) -> None:
        """Store the session in the hot tier and write it through."""
        with self.cache.lock:
            session.touch()
            self.cache.put(session)
            self._write_through(session)

    def append(
        self,
        session_id: str,
        turn: Turn,
        *,
        advance_round: bool = False,
        expected_round: int | None = None,
    ) -> Turn:
        """
        Append a turn to the active branch, optionally completing a round.

        The turn's sequence and branch are assigned here. Appending and the
        round increment happen atomically.

        Args:
            session_id: Target session
            turn: Turn to append (sequence is overwritten)
            advance_round: Increment the round counter with this append
            expected_round: Reject the append if the round moved meanwhile

        Returns:
            The stored turn

        Raises:
            InvalidStateError: Session is terminal or the round budget is spent
            ConcurrentModificationError: expected_round no longer matches
        """
        with self.cache.lock:
            session = self.get(session_id)
            if session.is_terminal:
                raise InvalidStateError(session_id, session.state.value, "append")
            if expected_round is not None and session.round != expected_round:
                raise ConcurrentModificationError(
                    session_id,
                    f"expected round {expected_round}, found {session.round}",
                )
            if advance_round and session.round >= session.max_rounds:
                raise InvalidStateError(session_id, session.state.value, "advance past max_rounds")

            stored = turn.model_copy(update={
                "sequence": len(session.turns),
                "branch": session.active_branch,
            })
            session.turns.append(stored)
            session.branches[session.active_branch].turn_sequences.append(stored.sequence)
            if advance_round:
                session.round += 1
            session.touch()
            self._write_through(session)
            return stored

    def update_offer(self, session_id: str, offer: CurrentOffer) -> NegotiationSession:
        with self.cache.lock:
            session = self.get(session_id)
            if session.is_terminal:
                raise InvalidStateError(session_id, session.state.value, "update offer")
            session.current_offer = offer
            session.touch()
            self._write_through(session)
            return session

    def transition(
        self,
        session_id: str,
        new_state: SessionState,
        *,
        final_price: float | None = None,
    ) -> NegotiationSession:
        """
        Move a session to a new state.

        Raises:
            InvalidStateError: If the session is already terminal
        """
        with self.cache.lock:
            session = self.get(session_id)
            if session.is_terminal:
                raise InvalidStateError(session_id, session.state.value, f"transition to {new_state.value}")
            previous = session.state
            session.state = new_state
            if final_price is not None:
                session.final_price = final_price
            session.touch()
            self._write_through(session)
        logger.info(f"Session {session_id}: {previous.value} -> {new_state.value}")
        return session

    # ---------- branches ----------

    def create_branch(
        self,
        session_id: str,
        name: str,
        parent: str | None = None,
        fork_point: int | None = None,
        branch_type: BranchType = "scenario",
    ) -> Branch:
        """
        Fork a new branch from `parent` (default: the active branch).

        The new branch shares the first `fork_point` turns of the parent's
        view (default: all of them). The active branch is unchanged.
        branch_type labels the purpose of the branch (scenario, alternative,
        backup or test); "main" is reserved for the root branch.
        """
        with self.cache.lock:
            session = self.get(session_id)
            if session.is_terminal:
                raise InvalidStateError(session_id, session.state.value, "create branch")
            if name in session.branches:
                raise ValidationException(
                    f"Branch '{name}' already exists",
                    field_errors=[{"field": "name", "message": "duplicate branch name"}],
                )
            parent = parent or session.active_branch
            if parent not in session.branches:
                raise BranchNotFoundError(session_id, parent)

            parent_len = len(session.branch_view(parent))
            if fork_point is None:
                fork_point = parent_len
            if fork_point < 0 or fork_point > parent_len:
                raise ValidationException(
                    f"fork_point must be between 0 and {parent_len}",
                    field_errors=[{"field": "fork_point", "message": "out of range"}],
                )

            branch = Branch(name=name, parent=parent, fork_point=fork_point, branch_type=branch_type)
            session.branches[name] = branch
            session.branch_events.append(BranchEvent(kind="created", branch=name, previous=parent))
            session.touch()
            self._write_through(session)

        logger.info(f"Session {session_id}: created branch '{name}' from '{parent}' at {fork_point}")
        return branch

    def switch_branch(self, session_id: str, name: str) -> NegotiationSession:
        """
        Make `name` the active branch.

        The current offer is re-derived from the last priced turn visible on
        the new branch. The round counter is never rewound.
        """
        with self.cache.lock:
            session = self.get(session_id)
            if session.is_terminal:
                raise InvalidStateError(session_id, session.state.value, "switch branch")
            if name not in session.branches:
                raise BranchNotFoundError(session_id, name)

            previous = session.active_branch
            session.active_branch = name
            session.current_offer = None
            for turn in reversed(session.history):
                if turn.offer is not None:
                    proposer = "ai" if turn.actor == TurnActor.AI else turn.actor.value
                    session.current_offer = CurrentOffer(
                        amount=turn.offer.amount,
                        currency=session.product.currency,
                        proposed_by=proposer,
                    )
                    break
            session.branch_events.append(BranchEvent(kind="switched", branch=name, previous=previous))
            session.touch()
            self._write_through(session)

        logger.info(f"Session {session_id}: switched branch '{previous}' -> '{name}'")
        return session

    # ---------- eviction ----------

    def add_eviction_listener(self, listener: Callable[[str], None]) -> None:
        """Call listener with the id of every session evicted from the hot tier."""
        self._eviction_listeners.append(listener)

    def evict_idle(self, now: datetime | None = None) -> List[str]:
        """
        Drop idle sessions from the hot tier.

        With durable storage every idle session may go (it can be reloaded).
        Without it only terminal sessions are dropped, since anything else
        would be lost.

        Returns:
            Ids of evicted sessions
        """
        evicted: List[str] = []
        with self.cache.lock:
            for session in self.cache.idle_sessions(now or utcnow()):
                if self.persistence is None and not session.is_terminal:
                    continue
                if self.persistence is not None:
                    self.persistence.save(session)
                self.cache.remove(session.id)
                evicted.append(session.id)

        if evicted:
            logger.info(f"Evicted {len(evicted)} idle sessions from cache")
            for session_id in evicted:
                for listener in self._eviction_listeners:
                    listener(session_id)
        return evicted

    def _write_through(self, session: NegotiationSession) -> None:
        if self.persistence is not None:
            self.persistence.save(session)
