"""
Integration tests for durable session storage.

WHAT: Write-through, eviction and read-through against a real SQLite file
WHY: Sessions must survive cache eviction and process restarts
HOW: build_components() with persistence enabled, one database per test
"""

from datetime import timedelta

import pytest

from negotiator.core.models import NegotiationSnapshot
from negotiator.main import build_components
from negotiator.models.negotiation import ProductContext, utcnow
from negotiator.utils.exceptions import InvalidStateError, SessionNotFoundError
from tests.fixtures.factories import make_settings
from tests.fixtures.mock_llm import MockLLMProvider


@pytest.fixture
def db_settings(tmp_path):
    return make_settings(
        PERSISTENCE_ENABLED=True,
        DATABASE_URL=f"sqlite:///{tmp_path / 'data' / 'negotiations.db'}",
        LOG_FILE=str(tmp_path / "app.log"),
    )


@pytest.fixture
def components(db_settings):
    built = build_components(db_settings, MockLLMProvider(["I can do $480 for this bike."]))
    yield built
    built.database.close_db()


@pytest.fixture
def bike():
    return ProductContext(title="Vintage Road Bike", base_price=500.0, min_price=450.0)


@pytest.mark.integration
class TestPersistenceFlow:

    @pytest.mark.asyncio
    async def test_every_mutation_is_written_through(self, components, bike):
        view = await components.service.start_negotiation(bike, "Would you take $400?", initial_offer=400.0)

        with components.database.get_db() as db:
            row = db.get(NegotiationSnapshot, view.id)
            assert row.state == "in_progress"
            assert row.round == 1
            assert len(row.payload["turns"]) == 2

    @pytest.mark.asyncio
    async def test_evicted_session_reloads(self, components, bike):
        view = await components.service.start_negotiation(bike, "Would you take $400?", initial_offer=400.0)

        evicted = components.store.evict_idle(utcnow() + timedelta(hours=2))
        assert view.id in evicted
        assert view.id not in components.store.cache

        next_view = await components.service.submit_turn(view.id, "buyer", "How about $440?")
        assert next_view.round == 2
        assert [t.actor for t in next_view.recent_turns] == ["buyer", "ai", "buyer", "ai"]

    @pytest.mark.asyncio
    async def test_sessions_survive_restart(self, db_settings, components, bike):
        view = await components.service.start_negotiation(bike, "Would you take $400?", initial_offer=400.0)
        await components.service.submit_turn(view.id, "buyer", "Deal, I accept.")

        restarted = build_components(db_settings, MockLLMProvider())
        try:
            reloaded = await restarted.service.get_session(view.id)
            assert reloaded.state == "accepted"
            assert reloaded.final_price == 480.0
            assert reloaded.current_offer.amount == 480.0

            with pytest.raises(InvalidStateError):
                await restarted.service.submit_turn(view.id, "buyer", "Actually, $300?")
        finally:
            restarted.database.close_db()

    @pytest.mark.asyncio
    async def test_unknown_session_misses_both_tiers(self, components):
        with pytest.raises(SessionNotFoundError):
            await components.service.get_session("missing")

    def test_database_ping(self, components):
        status = components.database.ping_database()
        assert status["available"] is True
        assert status["error"] is None
