"""Additive relevance scoring over an explicit, ordered rule table.

Each rule is a pure function of (document, keyword bag, intent) returning the
points it contributes, so rules can be unit tested one at a time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from .catalog import CatalogDocument
from .keywords import KeywordBag
from .retrieval import SearchIntent

MAX_RANKED = 5

RuleFn = Callable[[CatalogDocument, KeywordBag, SearchIntent], int]


@dataclass(frozen=True)
class ScoringRule:
    name: str
    fn: RuleFn

    def apply(self, document: CatalogDocument, bag: KeywordBag, intent: SearchIntent) -> int:
        return self.fn(document, bag, intent)


@dataclass(frozen=True)
class ScoredCandidate:
    document: CatalogDocument
    score: int


def domain_industry_rule(document: CatalogDocument, bag: KeywordBag, intent: SearchIntent) -> int:
    """+3 for an in-domain industry, -2 otherwise; inactive without a domain signal."""
    if not intent.domain_active:
        return 0
    return 3 if intent.domain.industry_matches(document.industry) else -2


def subdomain_category_rule(document: CatalogDocument, bag: KeywordBag, intent: SearchIntent) -> int:
    # +3 when the category itself is a sub-domain category.
    if not intent.subdomain_active:
        return 0
    return 3 if intent.subdomain.category_matches(document.category) else 0


def subdomain_text_rule(document: CatalogDocument, bag: KeywordBag, intent: SearchIntent) -> int:
    if not intent.subdomain_active:
        return 0
    return 2 if intent.subdomain.mentioned_in(document.combined_text) else 0


def keyword_overlap_rule(document: CatalogDocument, bag: KeywordBag, intent: SearchIntent) -> int:
    """One point per solution keyword found in the document text."""
    text = document.combined_text
    return sum(1 for keyword in bag.solution if keyword and keyword.lower() in text)


DEFAULT_RULES: Tuple[ScoringRule, ...] = (
    ScoringRule("domain_industry", domain_industry_rule),
    ScoringRule("subdomain_category", subdomain_category_rule),
    ScoringRule("subdomain_text", subdomain_text_rule),
    ScoringRule("keyword_overlap", keyword_overlap_rule),
)


class RelevanceScorer:
    """Score, filter and rank retrieved candidates for one message."""

    def __init__(self, rules: Sequence[ScoringRule] = DEFAULT_RULES, max_ranked: int = MAX_RANKED) -> None:
        self._rules = tuple(rules)
        self._max_ranked = max_ranked

    def score(self, document: CatalogDocument, bag: KeywordBag, intent: SearchIntent) -> int:
        return sum(rule.apply(document, bag, intent) for rule in self._rules)

    def score_all(
        self, documents: Sequence[CatalogDocument], bag: KeywordBag, intent: SearchIntent
    ) -> List[ScoredCandidate]:
        return [ScoredCandidate(document, self.score(document, bag, intent)) for document in documents]

    def filter_and_rank(
        self, documents: Sequence[CatalogDocument], bag: KeywordBag, intent: SearchIntent
    ) -> List[CatalogDocument]:
        """Purpose: Keep positively scored candidates, best first, at most max_ranked.
        Inputs/Outputs: Inputs are raw candidates, the bag and intent; output is
            the ranked document list.
        Side Effects / State: None.
        Failure Modes: None.
        If Removed: Irrelevant or cross-domain candidates reach the prompt.
        Testing Notes: Equal scores keep retrieval order (sorted() is stable).
        """
        scored = [candidate for candidate in self.score_all(documents, bag, intent) if candidate.score > 0]
        ranked = sorted(scored, key=lambda candidate: candidate.score, reverse=True)
        return [candidate.document for candidate in ranked[: self._max_ranked]]
