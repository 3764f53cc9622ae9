"""Keyword extraction over fixed marketplace vocabularies.

Matching is a case-insensitive substring test of the message against each
vocabulary, so multi-word phrases ("predictive analytics") match as written.
The output is only ever used as literal terms downstream; it is never joined
into a regular expression.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

SOLUTION_TERMS: Tuple[str, ...] = (
    "chatbot",
    "predictive analytics",
    "recommendation",
    "computer vision",
    "natural language",
    "automation",
    "analytics",
    "forecasting",
    "optimization",
    "personalization",
    "fraud detection",
    "image recognition",
    "sentiment analysis",
    "medical imaging",
    "diagnosis",
    "treatment",
    "patient care",
    "clinical decision",
    "health monitoring",
    "telemedicine",
    "electronic health records",
    "ehr",
    "medical records",
    "health data",
    "clinical analytics",
    "medical ai",
    "healthcare ai",
    "medical chatbot",
    "health analytics",
    "clinical ai",
    "sales",
    "customer service",
    "crm",
    "lead generation",
    "marketing automation",
    "sales automation",
    "customer engagement",
    "sales analytics",
    "revenue optimization",
)

INDUSTRY_TERMS: Tuple[str, ...] = (
    "healthcare",
    "medical",
    "health",
    "clinical",
    "hospital",
    "pharmaceutical",
    "pharma",
    "biotech",
    "biotechnology",
    "medicine",
    "healthcare industry",
    "medical industry",
    "health industry",
    "clinical care",
    "patient care",
    "healthcare services",
    "medical services",
    "health services",
    "finance",
    "e-commerce",
    "retail",
    "manufacturing",
    "education",
    "technology",
    "marketing",
    "sales",
    "customer service",
    "sales industry",
    "business development",
    "revenue",
    "lead generation",
    "customer acquisition",
    "sales automation",
)

COMPANY_TERMS: Tuple[str, ...] = ("vendor", "company", "provider", "solution provider", "ai company")

QUERY_TERMS: Tuple[str, ...] = (
    "need",
    "looking for",
    "requirement",
    "challenge",
    "problem",
    "help",
    "solution for",
    "implement",
    "deploy",
    "integrate",
)

BLOG_TERMS: Tuple[str, ...] = (
    "trend",
    "best practice",
    "guide",
    "tutorial",
    "article",
    "blog",
    "insight",
    "expert",
    "analysis",
    "comparison",
)

AI_TERMS: Tuple[str, ...] = (
    "ai",
    "artificial intelligence",
    "machine learning",
    "ml",
    "deep learning",
    "neural network",
    "nlp",
    "computer vision",
    "chatbot",
    "automation",
)

FALLBACK_TOKEN_LIMIT = 3
MIN_TOKEN_LENGTH = 4


@dataclass(frozen=True)
class KeywordBag:
    """Categorized keywords found in a single message."""
    solution: Tuple[str, ...] = ()
    industry: Tuple[str, ...] = ()
    company: Tuple[str, ...] = ()
    query: Tuple[str, ...] = ()
    blog: Tuple[str, ...] = ()
    ai: Tuple[str, ...] = ()
    from_fallback: bool = False

    def is_empty(self) -> bool:
        return not any((self.solution, self.industry, self.company, self.query, self.blog, self.ai))

    @property
    def has_category_keywords(self) -> bool:
        """True when solution or industry terms can drive the catalog filter."""
        return bool(self.solution or self.industry)

    def as_dict(self) -> Dict[str, List[str]]:
        return {
            "solution": list(self.solution),
            "industry": list(self.industry),
            "company": list(self.company),
            "query": list(self.query),
            "blog": list(self.blog),
            "ai": list(self.ai),
        }


def _match(lowered: str, vocabulary: Iterable[str]) -> Tuple[str, ...]:
    return tuple(term for term in vocabulary if term in lowered)


def message_tokens(text: str, limit: int = 0) -> List[str]:
    """Return lower-cased whitespace tokens longer than three characters.

    A positive limit keeps only the first ``limit`` tokens.
    """
    tokens = [token.lower() for token in (text or "").split() if len(token) >= MIN_TOKEN_LENGTH]
    if limit > 0:
        return tokens[:limit]
    return tokens


def extract(text: str) -> KeywordBag:
    """Purpose: Build a KeywordBag from a free-text message.
    Inputs/Outputs: Input is the raw message; output is a frozen KeywordBag.
    Side Effects / State: None; pure and deterministic.
    Dependencies: Module-level vocabularies and message_tokens.
    Failure Modes: None; empty text yields an empty bag.
    If Removed: Retrieval has no terms to filter on.
    Testing Notes: Same input twice gives equal bags; "hello" falls back to tokens.
    """
    lowered = (text or "").lower()
    bag = KeywordBag(
        solution=_match(lowered, SOLUTION_TERMS),
        industry=_match(lowered, INDUSTRY_TERMS),
        company=_match(lowered, COMPANY_TERMS),
        query=_match(lowered, QUERY_TERMS),
        blog=_match(lowered, BLOG_TERMS),
        ai=_match(lowered, AI_TERMS),
    )
    if bag.is_empty():
        # Nothing recognised: treat the first few long tokens as solution terms.
        return KeywordBag(solution=tuple(message_tokens(text, FALLBACK_TOKEN_LIMIT)), from_fallback=True)
    return bag
