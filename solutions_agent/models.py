from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class Turn(BaseModel):
    """Single conversation message kept in the session history."""
    role: Literal["user", "assistant"]
    content: str
    timestamp: float = 0.0


class ChatRequest(BaseModel):
    """Request payload for the chat and internet-search APIs."""
    message: str = Field(min_length=1)
    session_id: Optional[str] = Field(default=None)


class SolutionCard(BaseModel):
    """Recommendation card rendered by the UI next to the answer."""
    id: str
    title: str
    company: str
    website: str = ""
    logo: Optional[str] = None
    industry: str = ""
    category: str = ""
    short_description: str = ""
    pricing: str = "Contact for pricing"
    price: Optional[float] = None
    is_premium: bool = False


class ContextSummary(BaseModel):
    solutions_found: int = 0
    companies_found: int = 0


class SearchStatus(BaseModel):
    has_system_matches: bool
    needs_internet_search: bool


class ReadinessView(BaseModel):
    is_ready: bool
    signals: Dict[str, bool]


class ChatResult(BaseModel):
    """Successful turn: model text plus retrieval diagnostics and gated cards."""
    success: Literal[True] = True
    response: str
    session_id: str
    context: ContextSummary
    search_status: SearchStatus
    solution_cards: List[SolutionCard] = Field(default_factory=list)
    mode: str
    readiness: ReadinessView


class ChatFailure(BaseModel):
    """Failed turn; the session id is returned so the caller can retry."""
    success: Literal[False] = False
    error: str
    session_id: str


class InternetSearchResult(BaseModel):
    success: Literal[True] = True
    response: str
    session_id: str
    search_type: str = "internet"
    context: ContextSummary = Field(default_factory=ContextSummary)


class HistoryResponse(BaseModel):
    session_id: str
    history: List[Turn]
    message_count: int


class ClearResponse(BaseModel):
    success: bool
    message: str


class StatsResponse(BaseModel):
    active_sessions: int
    total_messages: int
