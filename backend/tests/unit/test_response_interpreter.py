"""
Unit tests for the response interpreter.

WHAT: LLM reply interpretation and human turn classification
WHY: Every transition decision starts from these readings
HOW: Representative and garbled inputs against a 450..500 listing
"""

import pytest

from negotiator.engine.response_interpreter import (
    CONFIDENCE_AMBIGUOUS,
    CONFIDENCE_DECISION_BLOCK,
    CONFIDENCE_EXPLICIT_PRICE,
    CONFIDENCE_REJECT_PHRASE,
    CONFIDENCE_VAGUE_PRICE,
    ResponseInterpreter,
)
from negotiator.models.negotiation import CurrentOffer, TurnAction, TurnActor
from tests.fixtures.factories import make_turn


@pytest.fixture
def interpreter():
    return ResponseInterpreter()


@pytest.fixture
def negotiating(store, product):
    """Session where the buyer offered 430 and the AI countered at 470."""
    session = store.create(product)
    store.append(session.id, make_turn(TurnActor.BUYER, "Would you take $430?", 430.0))
    store.append(session.id, make_turn(TurnActor.AI, "I can do $470.", 470.0), advance_round=True)
    return store.get(session.id)


@pytest.fixture
def buyer_at_460(store, product):
    """Session whose standing offer is the buyer's $460."""
    session = store.create(product)
    store.append(session.id, make_turn(TurnActor.BUYER, "How about $460?", 460.0))
    store.update_offer(session.id, CurrentOffer(amount=460.0, currency="USD", proposed_by="buyer"))
    return store.get(session.id)


@pytest.mark.unit
class TestInterpretReply:
    """LLM replies."""

    def test_decision_block_wins(self, interpreter, session):
        raw = 'I could come down a bit.\n```decision\n{"action": "counter", "price": 470, "reasoning": "meet halfway"}\n```'
        result = interpreter.interpret(raw, session)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 470.0
        assert result.confidence == CONFIDENCE_DECISION_BLOCK
        assert result.message == "I could come down a bit."
        assert result.reasoning == "meet halfway"

    def test_implausible_block_price_falls_back_to_dialogue(self, interpreter, session):
        raw = 'How about $475?\n```decision\n{"action": "counter", "price": 10000}\n```'
        result = interpreter.interpret(raw, session)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 475.0
        assert result.confidence == CONFIDENCE_EXPLICIT_PRICE
        assert any("implausible" in w for w in result.warnings)

    def test_counter_block_without_any_price_is_continue(self, interpreter, session):
        raw = 'Let me think.\n```decision\n{"action": "counter"}\n```'
        result = interpreter.interpret(raw, session)
        assert result.action == TurnAction.CONTINUE
        assert result.confidence == CONFIDENCE_AMBIGUOUS
        assert any("ParseAmbiguityWarning" in w for w in result.warnings)

    def test_refusal_naming_a_price_is_counter(self, interpreter, session):
        raw = "<think>they are lowballing</think>I can't accept that, but $470 works for me."
        result = interpreter.interpret(raw, session)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 470.0
        assert result.confidence == CONFIDENCE_REJECT_PHRASE
        assert "think" not in result.message

    def test_plain_refusal_is_reject(self, interpreter, session):
        result = interpreter.interpret("I cannot accept that offer. No deal.", session)
        assert result.action == TurnAction.REJECT
        assert result.offer_amount is None

    def test_accept_phrase(self, interpreter, session):
        result = interpreter.interpret("It's a deal! Enjoy the bike.", session)
        assert result.action == TurnAction.ACCEPT
        assert result.offer_amount is None

    def test_agreeing_while_naming_another_price_is_counter(self, interpreter, buyer_at_460):
        raw = "I agree it's a popular model, but I need $480 for it."
        result = interpreter.interpret(raw, buyer_at_460)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 480.0
        assert result.confidence == CONFIDENCE_EXPLICIT_PRICE

    def test_accept_phrase_at_standing_offer_stays_accept(self, interpreter, buyer_at_460):
        result = interpreter.interpret("It's a deal at $460, enjoy the ride!", buyer_at_460)
        assert result.action == TurnAction.ACCEPT
        assert result.offer_amount == 460.0

    def test_accept_block_with_another_price_is_counter(self, interpreter, buyer_at_460):
        raw = 'Happy to close.\n```decision\n{"action": "accept", "price": 475}\n```'
        result = interpreter.interpret(raw, buyer_at_460)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 475.0
        assert result.confidence == CONFIDENCE_DECISION_BLOCK

    def test_accept_phrase_with_price_and_no_human_offer_is_counter(self, interpreter, session):
        result = interpreter.interpret("Deal, $490 and it's yours.", session)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 490.0

    @pytest.mark.parametrize("raw", [
        "Deal? Only if you throw in the lock",
        "Sold ? Not yet, I still have questions.",
        "Agreed?",
    ])
    def test_questions_are_not_acceptance(self, interpreter, buyer_at_460, raw):
        result = interpreter.interpret(raw, buyer_at_460)
        assert result.action != TurnAction.ACCEPT

    def test_bare_number_is_low_confidence_counter(self, interpreter, session):
        result = interpreter.interpret("How about 470?", session)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 470.0
        assert result.confidence == CONFIDENCE_VAGUE_PRICE

    def test_small_numbers_are_not_prices(self, interpreter, session):
        result = interpreter.interpret("I have owned it for 2 years, it rides great.", session)
        assert result.action == TurnAction.CONTINUE

    def test_no_signal_is_ambiguous_continue(self, interpreter, session):
        result = interpreter.interpret("Hmm, tell me more about what you need.", session)
        assert result.action == TurnAction.CONTINUE
        assert result.confidence == CONFIDENCE_AMBIGUOUS
        assert any(w.startswith("ParseAmbiguityWarning") for w in result.warnings)

    def test_sanitized_reply_loses_confidence(self, interpreter, session):
        result = interpreter.interpret("Call me at 555-123-4567, I can do $480", session)
        assert result.sanitized
        assert "[PHONE_REMOVED]" in result.message
        assert result.offer_amount == 480.0
        assert result.confidence == pytest.approx(CONFIDENCE_EXPLICIT_PRICE * 0.7, abs=1e-3)

    def test_long_reply_is_trimmed(self, interpreter, session):
        result = interpreter.interpret(" ".join(["great"] * 300) + " $480", session)
        assert len(result.message.split()) <= 121

    @pytest.mark.parametrize("raw", [
        "",
        None,
        "}}}```decision{",
        "$$$",
        "\x00\x01\x02",
        "9" * 400,
        "<think>",
        '```decision\n{"action": "counter", "price": [1, 2]}\n```',
    ])
    def test_garbage_never_raises(self, interpreter, session, raw):
        result = interpreter.interpret(raw, session)
        assert result.action == TurnAction.CONTINUE
        assert 0.0 <= result.confidence <= 1.0


@pytest.mark.unit
class TestClassifyHuman:
    """Human turns."""

    def test_accepting_ai_offer(self, interpreter, negotiating):
        result = interpreter.classify_human("I accept your offer", negotiating)
        assert result.action == TurnAction.ACCEPT
        assert result.offer_amount == 470.0

    def test_accept_with_other_price_is_counter(self, interpreter, negotiating):
        result = interpreter.classify_human("I accept at $460", negotiating)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 460.0

    def test_accept_without_ai_offer_is_continue(self, interpreter, session):
        result = interpreter.classify_human("Deal!", session)
        assert result.action == TurnAction.CONTINUE
        assert result.offer_amount is None

    def test_explicit_offer_overrides_text(self, interpreter, negotiating):
        result = interpreter.classify_human("what about this, I saw one for $300", negotiating, explicit_offer=455.0)
        assert result.action == TurnAction.COUNTER
        assert result.offer_amount == 455.0
        assert result.confidence == 1.0

    def test_questioning_the_deal_is_not_acceptance(self, interpreter, negotiating):
        result = interpreter.classify_human("Deal? Only if you throw in the lock", negotiating)
        assert result.action == TurnAction.CONTINUE
        assert result.offer_amount is None

    def test_exclaimed_deal_accepts(self, interpreter, negotiating):
        result = interpreter.classify_human("Deal!", negotiating)
        assert result.action == TurnAction.ACCEPT
        assert result.offer_amount == 470.0

    def test_refusal_is_not_acceptance(self, interpreter, negotiating):
        result = interpreter.classify_human("No deal, I won't accept that", negotiating)
        assert result.action == TurnAction.CONTINUE

    def test_message_is_redacted(self, interpreter, negotiating):
        result = interpreter.classify_human("email me at bob@example.com, 440?", negotiating)
        assert "bob@example.com" not in result.message
        assert result.sanitized
        assert result.offer_amount == 440.0
