from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

import solutions_agent
from solutions_agent.agent import SolutionsAgent
from solutions_agent.catalog import CatalogDocument, CatalogFilter, JsonCatalogStore
from solutions_agent.errors import ConfigurationError, RetrievalError
from solutions_agent.prompt_builder import PromptAssembler
from solutions_agent.retrieval import CandidateRetriever
from solutions_agent.session_store import SessionStore

PACKAGE_DIR = Path(solutions_agent.__file__).resolve().parent
PROMPTS_DIR = PACKAGE_DIR / "prompts"
SAMPLE_CATALOG = PACKAGE_DIR / "data" / "sample_catalog.json"


class FakeCompletion:
    """Records provider calls; replies with numbered text or raises."""

    def __init__(self, reply: str = "Here is what I found.", error: Optional[BaseException] = None, configured: bool = True):
        self.reply = reply
        self.error = error
        self.configured = configured
        self.calls: List[Dict[str, object]] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("GEMINI_API_KEY is required")

    async def complete(self, messages: Sequence[Dict[str, str]], max_output_tokens: Optional[int] = None, model: Optional[str] = None) -> str:
        self.calls.append({"messages": list(messages), "max_output_tokens": max_output_tokens})
        if self.error is not None:
            raise self.error
        return f"{self.reply} #{len(self.calls)}"

    @property
    def last_system_text(self) -> str:
        return self.calls[-1]["messages"][0]["content"]


class BrokenStore:
    async def query(self, catalog_filter: CatalogFilter, limit: int) -> List[CatalogDocument]:
        raise RetrievalError("catalog offline")


@pytest.fixture
def prompts_dir() -> Path:
    return PROMPTS_DIR


@pytest.fixture
def sample_store() -> JsonCatalogStore:
    return JsonCatalogStore(SAMPLE_CATALOG)


@pytest.fixture
def documents(sample_store: JsonCatalogStore) -> List[CatalogDocument]:
    return sample_store.load()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def make_agent(sample_store):
    def _make(completion: FakeCompletion, store=None, sessions: Optional[SessionStore] = None) -> SolutionsAgent:
        return SolutionsAgent(
            completion=completion,
            retriever=CandidateRetriever(store or sample_store),
            sessions=sessions or SessionStore(max_turns=20),
            assembler=PromptAssembler(PROMPTS_DIR),
            max_output_tokens=1000,
            internet_max_output_tokens=1200,
        )

    return _make


@pytest.fixture
def agent(make_agent, completion) -> SolutionsAgent:
    return make_agent(completion)
