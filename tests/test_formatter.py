from solutions_agent.catalog import CatalogDocument
from solutions_agent.formatter import ResponseFormatter, to_card
from solutions_agent.prompt_builder import PromptMode
from solutions_agent.readiness import Readiness, ReadinessSignals
from solutions_agent.retrieval import ConversationContext

READY = Readiness(is_ready=True, signals=ReadinessSignals(has_setting=True, has_use_case=True))
NOT_READY = Readiness(is_ready=False, signals=ReadinessSignals())


def test_to_card_maps_document(documents):
    card = to_card(documents[0])
    assert card.id == "s-001"
    assert card.company == "RadiantVision Health"
    assert card.website == "https://radiantvision.example.com"
    assert card.pricing == "subscription"
    assert card.price == 2500.0
    assert card.is_premium is True


def test_to_card_defaults_pricing():
    card = to_card(CatalogDocument(id="x", title="Bare"))
    assert card.company == "Unknown Company"
    assert card.pricing == "Contact for pricing"
    assert card.price is None


def test_cards_only_when_ready(documents):
    context = ConversationContext.from_candidates(documents[:3])
    formatter = ResponseFormatter()
    ready = formatter.format("s1", "text", context, READY, PromptMode.READY)
    gated = formatter.format("s1", "text", context, NOT_READY, PromptMode.GATED)
    assert [card.id for card in ready.solution_cards] == ["s-001", "s-002", "s-003"]
    assert gated.solution_cards == []
    assert gated.context.solutions_found == 3
    assert gated.context.companies_found == 2
    assert gated.mode == "gated"
    assert gated.readiness.signals["has_setting"] is False


def test_search_status_for_empty_context():
    result = ResponseFormatter().format("s1", "none", ConversationContext(), READY, PromptMode.NO_MATCH)
    assert result.success is True
    assert result.search_status.has_system_matches is False
    assert result.search_status.needs_internet_search is True
    assert result.solution_cards == []
