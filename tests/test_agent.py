import asyncio

import pytest

from solutions_agent.agent import GENERIC_ERROR, INTERNET_SEARCH_ERROR, SolutionsAgent, TurnContext
from solutions_agent.config import load_settings
from solutions_agent.errors import ConfigurationError, GenerationError
from solutions_agent.models import ChatFailure, ChatResult, InternetSearchResult, Turn

from .conftest import BrokenStore, FakeCompletion


def _send(agent, message, session_id=None):
    return asyncio.run(agent.process_message(message, session_id))


def test_greeting_gets_no_match_guidance(agent, completion):
    result = _send(agent, "hello", "s-greet")
    assert isinstance(result, ChatResult)
    assert result.mode == "no_match"
    assert result.solution_cards == []
    assert result.search_status.needs_internet_search is True
    assert "**RESPONSE TEMPLATE:**" in completion.last_system_text
    assert completion.calls[-1]["max_output_tokens"] == 1000


def test_unclear_intent_withholds_cards(agent, completion):
    result = _send(agent, "I need a chatbot for healthcare", "s-gated")
    assert result.mode == "gated"
    assert result.solution_cards == []
    assert result.context.solutions_found == 5
    assert result.search_status.has_system_matches is True
    assert result.readiness.is_ready is False
    assert "Telemedicine Intake Chatbot" not in completion.last_system_text
    assert "clarifying questions" in completion.last_system_text


def test_clear_intent_returns_cards(agent, completion):
    result = _send(agent, "Our hospital needs triage chatbot help", "s-ready")
    assert result.mode == "ready"
    assert [card.id for card in result.solution_cards] == ["s-006"]
    card = result.solution_cards[0]
    assert card.company == "CarePath Analytics"
    assert card.pricing == "freemium"
    assert card.price is None
    assert "**Pricing**: freemium" in completion.last_system_text
    assert "**Related Companies:**" in completion.last_system_text


def test_imaging_request_uses_earlier_setting(agent, completion):
    first = _send(agent, "We run a telehealth program", "s-img")
    assert first.mode == "gated"
    assert first.solution_cards == []
    result = _send(agent, "For our hospital radiology department we need imaging triage", "s-img")
    assert result.mode == "ready"
    assert result.solution_cards[0].id == "s-001"
    assert all(card.industry == "Healthcare" for card in result.solution_cards)
    messages = completion.calls[-1]["messages"]
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[2]["content"] == "Here is what I found. #1"


def test_catalog_outage_degrades_to_no_match(make_agent, completion):
    agent = make_agent(completion, store=BrokenStore())
    result = _send(agent, "Our hospital needs triage chatbot help", "s-down")
    assert isinstance(result, ChatResult)
    assert result.mode == "no_match"
    assert result.context.solutions_found == 0
    assert result.solution_cards == []


def test_successful_turn_appends_exchange(agent):
    result = _send(agent, "hello", "s-hist")
    history = agent.get_history("s-hist")
    assert [(turn.role, turn.content) for turn in history] == [
        ("user", "hello"),
        ("assistant", result.response),
    ]
    assert all(turn.timestamp > 0 for turn in history)


def test_new_session_id_is_generated(agent):
    result = _send(agent, "hello")
    assert len(result.session_id) == 32
    assert len(agent.get_history(result.session_id)) == 2


def test_generation_failure_leaves_history_unchanged(make_agent):
    agent = make_agent(FakeCompletion(error=GenerationError("provider down")))
    result = _send(agent, "hello", "s-fail")
    assert isinstance(result, ChatFailure)
    assert result.success is False
    assert result.error == GENERIC_ERROR
    assert result.session_id == "s-fail"
    assert agent.get_history("s-fail") == []


def test_missing_configuration_raises_before_any_work(make_agent):
    completion = FakeCompletion(configured=False)
    agent = make_agent(completion)
    with pytest.raises(ConfigurationError):
        _send(agent, "hello", "s-cfg")
    with pytest.raises(ConfigurationError):
        asyncio.run(agent.handle_internet_search_request("hello", "s-cfg"))
    assert completion.calls == []
    assert agent.get_stats().active_sessions == 0


def test_cancellation_propagates_without_touching_history(make_agent):
    agent = make_agent(FakeCompletion(error=asyncio.CancelledError()))
    with pytest.raises(asyncio.CancelledError):
        _send(agent, "hello", "s-cancel")
    assert agent.get_history("s-cancel") == []


def test_history_window_sent_to_provider(agent, completion):
    for i in range(12):
        agent.sessions.append("s-long", Turn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}"))
    _send(agent, "hello", "s-long")
    messages = completion.calls[-1]["messages"]
    assert len(messages) == 12
    assert messages[1]["content"] == "turn 2"
    assert messages[-1] == {"role": "user", "content": "hello"}


def test_history_is_bounded_to_twenty_turns(agent):
    for i in range(11):
        _send(agent, f"message {i}", "s-bound")
    history = agent.get_history("s-bound")
    assert len(history) == 20
    assert history[0].content == "message 1"


def test_history_reads_are_idempotent(agent):
    _send(agent, "hello", "s-read")
    assert agent.get_history("s-read") == agent.get_history("s-read")
    assert agent.get_history("unknown") == []


def test_clear_history_only_affects_one_session(agent):
    _send(agent, "hello", "a")
    _send(agent, "hello", "b")
    cleared = agent.clear_history("a")
    assert cleared.success is True
    assert cleared.message == "Conversation history cleared"
    assert agent.get_history("a") == []
    assert len(agent.get_history("b")) == 2
    assert agent.clear_history("missing").success is True


def test_stats_count_sessions_and_messages(agent):
    _send(agent, "hello", "a")
    _send(agent, "hello again", "a")
    _send(agent, "hello", "b")
    stats = agent.get_stats()
    assert stats.active_sessions == 2
    assert stats.total_messages == 6


def test_internet_search_flow(agent, completion):
    _send(agent, "hello", "s-net")
    result = asyncio.run(agent.handle_internet_search_request("Find radiology AI vendors", "s-net"))
    assert isinstance(result, InternetSearchResult)
    assert result.search_type == "internet"
    assert result.session_id == "s-net"
    assert completion.calls[-1]["max_output_tokens"] == 1200
    messages = completion.calls[-1]["messages"]
    assert "internet-based search" in messages[0]["content"]
    assert len(messages) == 4
    assert len(agent.get_history("s-net")) == 4


def test_internet_search_failure(make_agent):
    agent = make_agent(FakeCompletion(error=GenerationError("timeout")))
    result = asyncio.run(agent.handle_internet_search_request("Find vendors", "s-net-fail"))
    assert isinstance(result, ChatFailure)
    assert result.error == INTERNET_SEARCH_ERROR
    assert agent.get_history("s-net-fail") == []


def test_from_settings_wires_json_catalog(completion, monkeypatch):
    monkeypatch.delenv("CATALOG_BACKEND", raising=False)
    monkeypatch.delenv("CATALOG_PATH", raising=False)
    agent = SolutionsAgent.from_settings(load_settings(), completion=completion)
    result = _send(agent, "Our hospital needs triage chatbot help", "s-wired")
    assert [card.id for card in result.solution_cards] == ["s-006"]


def test_radiology_department_request_is_ready_and_domain_restricted(agent):
    agent.sessions.append("s-rad", Turn(role="user", content="We also offer telehealth visits"))
    result = _send(agent, "I run a hospital radiology department and need medical imaging triage help", "s-rad")
    assert result.readiness.is_ready is True
    assert result.solution_cards
    assert all(card.industry == "Healthcare" for card in result.solution_cards)


def test_clearing_after_five_exchanges(agent):
    for i in range(5):
        _send(agent, f"hello {i}", "s-five")
    _send(agent, "hello", "s-other")
    before = agent.get_stats().active_sessions
    agent.clear_history("s-five")
    assert agent.get_history("s-five") == []
    assert agent.get_stats().active_sessions == before - 1


def test_compound_healthcare_words_keep_cards_in_healthcare(agent):
    result = _send(agent, "We need telehealth scheduling and sales analytics", "s-tele")
    assert result.readiness.is_ready is True
    assert [card.id for card in result.solution_cards][:2] == ["s-004", "s-005"]
    assert all(card.industry == "Healthcare" for card in result.solution_cards)
    result = _send(agent, "Our outpatient clinic wants billing help", "s-outpatient")
    assert result.readiness.is_ready is True
    assert all(card.industry == "Healthcare" for card in result.solution_cards)


def test_steps_reject_missing_context_fields(agent):
    context = TurnContext(session_id="s-partial", user_message="hello", history=[])
    with pytest.raises(RuntimeError):
        agent._step_assemble(context)
    with pytest.raises(RuntimeError):
        asyncio.run(agent._step_invoke(context))
    with pytest.raises(RuntimeError):
        agent._step_format(context)
