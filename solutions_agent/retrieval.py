from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Sequence, Tuple

from .catalog import CatalogDocument, CatalogFilter, CatalogStore, CompanyRef, FieldMatch
from .errors import RetrievalError
from .keywords import KeywordBag, message_tokens

logger = logging.getLogger("solutions_hub.retrieval")

RAW_CANDIDATE_LIMIT = 12
DOMAIN_FALLBACK_LIMIT = 5

KEYWORD_FIELDS = ("title", "short_description", "category", "use_cases")
TOKEN_FIELDS = ("title", "short_description", "category", "industry")
SUBDOMAIN_FIELDS = ("category", "title", "short_description")


def term_pattern(terms: Sequence[str]) -> Pattern[str]:
    """Compile a case-insensitive alternation of escaped literal terms, matched anywhere."""
    # Longest first so multi-word terms win over their prefixes.
    return re.compile("|".join(re.escape(term) for term in sorted(terms, key=len, reverse=True)), re.IGNORECASE)


def word_pattern(terms: Sequence[str]) -> Pattern[str]:
    """Compile escaped literal terms that must start and end at word boundaries.

    A plural "s"/"es" is allowed, so "clinics" matches "clinic" but "need" does
    not match "ed".
    """
    return re.compile(rf"\b(?:{term_pattern(terms).pattern})(?:s|es)?\b", re.IGNORECASE)


@dataclass(frozen=True)
class DomainProfile:
    """Industry restriction triggered by signal words anywhere in the message.

    Signals are substrings so compounds such as "telehealth" or "outpatient"
    still count.
    """
    name: str
    signal_terms: Tuple[str, ...]
    industry_terms: Tuple[str, ...]
    _signal_re: Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_signal_re", term_pattern(self.signal_terms))

    def is_signalled(self, text: str) -> bool:
        return bool(self._signal_re.search(text or ""))

    def industry_matches(self, industry: str) -> bool:
        lowered = (industry or "").lower()
        return any(term in lowered for term in self.industry_terms)


@dataclass(frozen=True)
class SubdomainProfile:
    """Specialized vocabulary that widens retrieval and boosts scores."""
    name: str
    terms: Tuple[str, ...]
    category_terms: Tuple[str, ...]
    _terms_re: Pattern[str] = field(init=False, repr=False, compare=False)
    _category_re: Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_terms_re", word_pattern(self.terms))
        object.__setattr__(self, "_category_re", word_pattern(self.category_terms))

    def mentioned_in(self, text: str) -> bool:
        return bool(self._terms_re.search(text or ""))

    def category_matches(self, category: str) -> bool:
        return bool(self._category_re.search(category or ""))


HEALTHCARE = DomainProfile(
    name="healthcare",
    signal_terms=(
        "health",
        "medical",
        "clinic",
        "hospital",
        "clinical",
        "patient",
        "imaging",
        "radiology",
        "pacs",
        "ehr",
        "emr",
        "telemedicine",
    ),
    industry_terms=("healthcare",),
)

MEDICAL_IMAGING = SubdomainProfile(
    name="medical_imaging",
    terms=(
        "medical imaging",
        "imaging",
        "radiology",
        "x-ray",
        "ct",
        "mri",
        "ultrasound",
        "pacs",
        "dicom",
        "computer vision",
    ),
    category_terms=("imaging", "radiology", "pacs", "dicom", "computer vision"),
)


@dataclass(frozen=True)
class SearchIntent:
    """Per-message intent flags derived from the raw text."""
    domain_active: bool = False
    subdomain_active: bool = False
    domain: DomainProfile = HEALTHCARE
    subdomain: SubdomainProfile = MEDICAL_IMAGING


def detect_intent(
    raw_text: str, domain: DomainProfile = HEALTHCARE, subdomain: SubdomainProfile = MEDICAL_IMAGING
) -> SearchIntent:
    """Purpose: Flag whether the message signals the domain and mentions the sub-domain.
    Inputs/Outputs: Input is the raw message and the profiles; output is a SearchIntent.
    Side Effects / State: None.
    If Removed: Healthcare buyers see vendors from other industries.
    Testing Notes: "telehealth scheduling" must activate the healthcare domain.
    """
    return SearchIntent(
        domain_active=domain.is_signalled(raw_text),
        subdomain_active=subdomain.mentioned_in(raw_text),
        domain=domain,
        subdomain=subdomain,
    )


def build_filter(bag: KeywordBag, raw_text: str, intent: SearchIntent) -> Optional[CatalogFilter]:
    """Purpose: Translate extracted keywords and intent into a catalog filter.
    Inputs/Outputs: Inputs are the KeywordBag, the raw message, and SearchIntent;
        output is a CatalogFilter, or None when there is nothing to search for.
    Side Effects / State: None.
    Dependencies: FieldMatch/CatalogFilter value types; message_tokens for fallback.
    Failure Modes: None; unknown text simply yields the token fallback.
    If Removed: Retrieval cannot turn a message into a catalog query.
    Testing Notes: Healthcare messages add an industry clause to all_of; imaging
        terms add category/title/description clauses to any_of.
    """
    restriction: Tuple[FieldMatch, ...] = ()
    if intent.domain_active:
        restriction = (FieldMatch("industry", intent.domain.industry_terms),)

    if bag.has_category_keywords:
        clauses: List[FieldMatch] = []
        if bag.solution:
            clauses.extend(FieldMatch(name, bag.solution) for name in KEYWORD_FIELDS)
            clauses.append(FieldMatch("tags", bag.solution, exact=True))
        if bag.industry:
            clauses.append(FieldMatch("industry", bag.industry))
        if intent.subdomain_active:
            clauses.extend(FieldMatch(name, intent.subdomain.terms) for name in SUBDOMAIN_FIELDS)
        return CatalogFilter(any_of=tuple(clauses), all_of=restriction)

    # No category-specific keywords: match the message's own longer tokens.
    tokens = tuple(message_tokens(raw_text))
    if not tokens:
        return None
    return CatalogFilter(any_of=tuple(FieldMatch(name, tokens) for name in TOKEN_FIELDS), all_of=restriction)


class CandidateRetriever:
    """Fetch raw candidates from the catalog store for one message."""

    def __init__(self, store: CatalogStore, limit: int = RAW_CANDIDATE_LIMIT) -> None:
        self._store = store
        self._limit = limit

    async def retrieve(self, bag: KeywordBag, raw_text: str, intent: SearchIntent) -> List[CatalogDocument]:
        """Purpose: Query the catalog with the keyword filter.
        Inputs/Outputs: Inputs are the bag, raw text and intent; output is at most
            `limit` documents in store order.
        Side Effects / State: Awaits the external catalog store.
        Failure Modes: RetrievalError is logged and recovered as zero candidates.
        If Removed: No candidates reach the scorer and every turn is no-match.
        Testing Notes: A store raising RetrievalError yields [].
        """
        catalog_filter = build_filter(bag, raw_text, intent)
        if catalog_filter is None:
            logger.info("step=retrieve status=skipped reason=no_terms")
            return []
        try:
            documents = await self._store.query(catalog_filter, self._limit)
        except RetrievalError:
            logger.exception("step=retrieve status=error")
            return []
        logger.info(
            "step=retrieve candidates=%d domain=%s subdomain=%s",
            len(documents),
            intent.domain_active,
            intent.subdomain_active,
        )
        return documents

    async def fetch_domain_only(self, intent: SearchIntent, limit: int = DOMAIN_FALLBACK_LIMIT) -> List[CatalogDocument]:
        """Top documents filtered only by the domain industry, ignoring keywords."""
        if not intent.domain_active:
            return []
        catalog_filter = CatalogFilter(all_of=(FieldMatch("industry", intent.domain.industry_terms),))
        try:
            documents = await self._store.query(catalog_filter, limit)
        except RetrievalError:
            logger.exception("step=retrieve_domain_only status=error")
            return []
        logger.info("step=retrieve_domain_only domain=%s candidates=%d", intent.domain.name, len(documents))
        return documents


@dataclass(frozen=True)
class ConversationContext:
    """Ranked candidates and their vendors for a single request."""
    candidates: Tuple[CatalogDocument, ...] = ()
    related_companies: Tuple[CompanyRef, ...] = ()

    @property
    def has_any_match(self) -> bool:
        return bool(self.candidates or self.related_companies)

    @classmethod
    def from_candidates(cls, candidates: Sequence[CatalogDocument], max_companies: int = 5) -> "ConversationContext":
        companies: List[CompanyRef] = []
        seen = set()
        for document in candidates:
            company = document.company
            if not company.name or company.name in seen:
                continue
            seen.add(company.name)
            companies.append(company)
        return cls(candidates=tuple(candidates), related_companies=tuple(companies[:max_companies]))
