from __future__ import annotations

from typing import List

from .catalog import CatalogDocument
from .models import ChatResult, ContextSummary, ReadinessView, SearchStatus, SolutionCard
from .prompt_builder import PromptMode
from .readiness import Readiness
from .retrieval import ConversationContext


def to_card(document: CatalogDocument) -> SolutionCard:
    return SolutionCard(
        id=document.id,
        title=document.title,
        company=document.company.name or "Unknown Company",
        website=document.company.website,
        logo=document.company.logo,
        industry=document.industry,
        category=document.category,
        short_description=document.short_description,
        pricing=document.pricing.model or "Contact for pricing",
        price=document.pricing.amount,
        is_premium=document.is_premium,
    )


class ResponseFormatter:
    """Package model output with retrieval diagnostics and gated cards."""

    def format(
        self,
        session_id: str,
        model_text: str,
        context: ConversationContext,
        readiness: Readiness,
        mode: PromptMode,
    ) -> ChatResult:
        # Cards are shown only once intent is clear, whatever was retrieved.
        cards: List[SolutionCard] = []
        if readiness.is_ready:
            cards = [to_card(document) for document in context.candidates]
        return ChatResult(
            response=model_text,
            session_id=session_id,
            context=ContextSummary(
                solutions_found=len(context.candidates),
                companies_found=len(context.related_companies),
            ),
            search_status=SearchStatus(
                has_system_matches=context.has_any_match,
                needs_internet_search=not context.has_any_match,
            ),
            solution_cards=cards,
            mode=mode.value,
            readiness=ReadinessView(is_ready=readiness.is_ready, signals=readiness.signals.as_dict()),
        )
