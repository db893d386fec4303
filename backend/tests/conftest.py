"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Test markers plus settings, product and engine fixtures
WHY: Every test builds the engine the same way, isolated from .env files
HOW: Explicit Settings instances and a scripted MockLLMProvider
"""

import pytest

from negotiator.core.config import Settings
from negotiator.core.conversation_store import ConversationStore
from negotiator.engine.state_machine import NegotiationStateMachine
from negotiator.llm.completion import CompletionClient
from negotiator.models.negotiation import (
    AIContext,
    NegotiationSession,
    ProductContext,
)
from negotiator.services.analytics import AnalyticsContext
from negotiator.services.negotiation_service import NegotiationService
from tests.fixtures.factories import make_settings
from tests.fixtures.mock_llm import MockLLMProvider


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(LOG_FILE=str(tmp_path / "logs" / "app.log"))


@pytest.fixture
def product() -> ProductContext:
    return ProductContext(title="Vintage Road Bike", base_price=500.0, min_price=450.0, category="bikes")


@pytest.fixture
def session(product) -> NegotiationSession:
    return NegotiationSession(product=product, max_rounds=5, ai_context=AIContext())


@pytest.fixture
def mock_provider() -> MockLLMProvider:
    return MockLLMProvider(responses=["I can do $480 for this bike."])


@pytest.fixture
def store(settings) -> ConversationStore:
    return ConversationStore(settings)


@pytest.fixture
def analytics() -> AnalyticsContext:
    return AnalyticsContext()


@pytest.fixture
def machine(settings, store, mock_provider, analytics) -> NegotiationStateMachine:
    completion = CompletionClient(mock_provider, timeout=settings.LLM_REQUEST_TIMEOUT)
    return NegotiationStateMachine(settings, store, completion, analytics=analytics)


@pytest.fixture
def service(settings, machine, analytics) -> NegotiationService:
    return NegotiationService(settings, machine, analytics)
