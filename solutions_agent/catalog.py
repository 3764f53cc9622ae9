"""Catalog documents, query filters, and the stores that execute them.

The catalog is owned outside this package. Two adapters are provided: a JSON
file store evaluated in memory (default, also used by the tests) and a MongoDB
store backed by pymongo. Both take the same CatalogFilter, which is built from
literal terms only and escaped when translated to a MongoDB regex.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .config import Settings
from .errors import ConfigurationError, RetrievalError
from .utils import normalize_key

logger = logging.getLogger("solutions_hub.catalog")

ID_KEYS = ["_id", "id"]
TITLE_KEYS = ["title", "name"]
SHORT_DESC_KEYS = ["short description", "summary", "description"]
CATEGORY_KEYS = ["category", "department"]
INDUSTRY_KEYS = ["industry"]
TAG_KEYS = ["tags"]
USE_CASE_KEYS = ["use cases"]
PRICING_KEYS = ["pricing"]
COMPANY_KEYS = ["company", "company id", "company ref"]
PREMIUM_KEYS = ["is premium", "premium"]

# Document attribute -> stored field name in the MongoDB collection.
MONGO_FIELDS = {
    "title": "title",
    "short_description": "shortDescription",
    "category": "category",
    "industry": "industry",
    "tags": "tags",
    "use_cases": "useCases",
}


@dataclass(frozen=True)
class Pricing:
    model: str = ""
    amount: Optional[float] = None


@dataclass(frozen=True)
class CompanyRef:
    name: str = ""
    website: str = ""
    logo: Optional[str] = None


@dataclass(frozen=True)
class CatalogDocument:
    """Read-only view of a solution listing joined with its company."""
    id: str
    title: str
    short_description: str = ""
    category: str = ""
    industry: str = ""
    tags: Tuple[str, ...] = ()
    use_cases: Tuple[str, ...] = ()
    pricing: Pricing = field(default_factory=Pricing)
    company: CompanyRef = field(default_factory=CompanyRef)
    is_premium: bool = False

    @property
    def combined_text(self) -> str:
        """Lower-cased text used for keyword overlap scoring."""
        parts = [self.title, self.short_description, self.category, " ".join(self.use_cases), " ".join(self.tags)]
        return " ".join(part for part in parts if part).lower()

    @classmethod
    def from_record(
        cls, record: Dict[str, Any], companies: Optional[Dict[str, Dict[str, Any]]] = None
    ) -> "CatalogDocument":
        """Purpose: Normalize a raw catalog record into a CatalogDocument.
        Inputs/Outputs: Input is a raw dict (camelCase or snake_case keys) and an
            optional company index by id; output is a CatalogDocument.
        Side Effects / State: None.
        Dependencies: _get_first_value for key synonyms.
        Failure Modes: Missing fields default to empty values; never raises on shape.
        If Removed: Raw catalog records cannot be scored or rendered.
        Testing Notes: Verify Mongo-style records with pricing.price.amount parse.
        """
        pricing_raw = _get_first_value(record, PRICING_KEYS)
        pricing = Pricing()
        if isinstance(pricing_raw, dict):
            amount = pricing_raw.get("amount")
            price = pricing_raw.get("price")
            if amount is None and isinstance(price, dict):
                amount = price.get("amount")
            pricing = Pricing(model=str(pricing_raw.get("model") or ""), amount=_as_float(amount))

        return cls(
            id=str(_get_first_value(record, ID_KEYS) or ""),
            title=str(_get_first_value(record, TITLE_KEYS) or "").strip(),
            short_description=str(_get_first_value(record, SHORT_DESC_KEYS) or "").strip(),
            category=str(_get_first_value(record, CATEGORY_KEYS) or "").strip(),
            industry=str(_get_first_value(record, INDUSTRY_KEYS) or "").strip(),
            tags=_as_str_tuple(_get_first_value(record, TAG_KEYS)),
            use_cases=_as_str_tuple(_get_first_value(record, USE_CASE_KEYS)),
            pricing=pricing,
            company=_resolve_company(_get_first_value(record, COMPANY_KEYS), companies or {}),
            is_premium=bool(_get_first_value(record, PREMIUM_KEYS) or False),
        )


FieldValue = Union[str, Tuple[str, ...]]


@dataclass(frozen=True)
class FieldMatch:
    """Case-insensitive containment of any term in one document field.

    With ``exact`` set, an array field must contain one of the terms as a
    whole element instead.
    """
    field: str
    terms: Tuple[str, ...]
    exact: bool = False

    def matches(self, document: CatalogDocument) -> bool:
        value: FieldValue = getattr(document, self.field)
        values = value if isinstance(value, tuple) else (value,)
        lowered_terms = [term.lower() for term in self.terms if term]
        for item in values:
            text = (item or "").lower()
            if self.exact:
                if text in lowered_terms:
                    return True
            elif any(term in text for term in lowered_terms):
                return True
        return False

    def to_mongo(self) -> Dict[str, Any]:
        # Case-insensitive on both stores; exact matches anchor the whole element.
        name = MONGO_FIELDS[self.field]
        pattern = "|".join(re.escape(term) for term in self.terms if term)
        if self.exact:
            pattern = f"^(?:{pattern})$"
        return {name: {"$regex": pattern, "$options": "i"}}


@dataclass(frozen=True)
class CatalogFilter:
    """Conjunction of ``all_of`` clauses with a disjunction of ``any_of`` clauses."""
    any_of: Tuple[FieldMatch, ...] = ()
    all_of: Tuple[FieldMatch, ...] = ()

    def matches(self, document: CatalogDocument) -> bool:
        if not all(clause.matches(document) for clause in self.all_of):
            return False
        if self.any_of and not any(clause.matches(document) for clause in self.any_of):
            return False
        return True

    def to_mongo(self) -> Dict[str, Any]:
        clauses = [clause.to_mongo() for clause in self.all_of]
        if self.any_of:
            clauses.append({"$or": [clause.to_mongo() for clause in self.any_of]})
        if not clauses:
            return {}
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}


class CatalogStore(Protocol):
    async def query(self, catalog_filter: CatalogFilter, limit: int) -> List[CatalogDocument]:
        ...


class JsonCatalogStore:
    """Catalog backed by a JSON file, loaded once and filtered in memory."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._documents: Optional[List[CatalogDocument]] = None

    def load(self) -> List[CatalogDocument]:
        """Purpose: Load and normalize catalog data from the JSON file.
        Inputs/Outputs: No inputs; returns the list of CatalogDocument.
        Side Effects / State: Reads the file on first call and caches the result.
        Dependencies: json and CatalogDocument.from_record.
        Failure Modes: Missing file or invalid JSON raises RetrievalError.
        If Removed: The default JSON catalog backend cannot serve queries.
        Testing Notes: Point at a temp file with "solutions" and "companies" arrays.
        """
        if self._documents is not None:
            return self._documents
        try:
            data = json.loads(self._path.read_bytes().decode("utf-8-sig"))
        except (OSError, ValueError) as exc:
            raise RetrievalError(f"Catalog file could not be read: {self._path}") from exc

        companies: Dict[str, Dict[str, Any]] = {}
        if isinstance(data, dict):
            items = data.get("solutions") or data.get("items") or []
            for company in data.get("companies") or []:
                if isinstance(company, dict):
                    company_id = _get_first_value(company, ID_KEYS)
                    if company_id is not None:
                        companies[str(company_id)] = company
        elif isinstance(data, list):
            items = data
        else:
            items = []

        self._documents = [
            CatalogDocument.from_record(item, companies) for item in items if isinstance(item, dict)
        ]
        logger.info("catalog=%s documents=%d", self._path.name, len(self._documents))
        return self._documents

    async def query(self, catalog_filter: CatalogFilter, limit: int) -> List[CatalogDocument]:
        documents = self.load()
        matched: List[CatalogDocument] = []
        for document in documents:
            if catalog_filter.matches(document):
                matched.append(document)
                if len(matched) >= limit:
                    break
        return matched


class MongoCatalogStore:
    """Catalog backed by a MongoDB collection of solutions joined to companies."""

    def __init__(self, client: MongoClient, db_name: str, collection: str, companies_collection: str) -> None:
        self._client = client
        self._db_name = db_name
        self._collection = collection
        self._companies_collection = companies_collection

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoCatalogStore":
        if not settings.mongodb_uri:
            raise ConfigurationError("MONGODB_URI is required when CATALOG_BACKEND=mongo")
        client = MongoClient(
            settings.mongodb_uri,
            maxPoolSize=50,
            serverSelectionTimeoutMS=3000,
            connectTimeoutMS=3000,
            socketTimeoutMS=10000,
        )
        return cls(client, settings.mongodb_db, settings.mongodb_collection, settings.mongodb_companies_collection)

    def build_pipeline(self, catalog_filter: CatalogFilter, limit: int) -> List[Dict[str, Any]]:
        return [
            {"$match": catalog_filter.to_mongo()},
            {"$limit": limit},
            {
                "$lookup": {
                    "from": self._companies_collection,
                    "localField": "companyId",
                    "foreignField": "_id",
                    "as": "company",
                }
            },
            {"$unwind": {"path": "$company", "preserveNullAndEmptyArrays": True}},
        ]

    def _find(self, catalog_filter: CatalogFilter, limit: int) -> List[CatalogDocument]:
        collection = self._client[self._db_name][self._collection]
        cursor = collection.aggregate(self.build_pipeline(catalog_filter, limit))
        return [CatalogDocument.from_record(record) for record in cursor]

    async def query(self, catalog_filter: CatalogFilter, limit: int) -> List[CatalogDocument]:
        # pymongo is blocking; keep the event loop free.
        try:
            return await asyncio.to_thread(self._find, catalog_filter, limit)
        except PyMongoError as exc:
            raise RetrievalError("Catalog query failed") from exc


def build_catalog_store(settings: Settings) -> CatalogStore:
    if settings.catalog_backend == "mongo":
        return MongoCatalogStore.from_settings(settings)
    if settings.catalog_backend == "json":
        return JsonCatalogStore(settings.catalog_path)
    raise ConfigurationError(f"Unknown CATALOG_BACKEND: {settings.catalog_backend}")


def _get_first_value(item: Dict[str, Any], keys: List[str]) -> Optional[Any]:
    """Purpose: Find the first present field in a dict by key synonyms.
    Inputs/Outputs: Input is a raw dict and candidate keys; returns the value or None.
    Side Effects / State: None.
    Dependencies: Uses normalize_key and _has_value.
    Failure Modes: Returns None when no keys match or values are empty.
    If Removed: camelCase and snake_case catalog records stop parsing.
    Testing Notes: "useCases" and "use_cases" both resolve for "use cases".
    """
    normalized_map = {normalize_key(str(k)): k for k in item.keys()}
    for key in keys:
        normalized = normalize_key(key)
        if normalized in normalized_map:
            value = item.get(normalized_map[normalized])
            if _has_value(value):
                return value
    return None


def _has_value(value: Any) -> bool:
    # Treat None or empty strings as missing values.
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_str_tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    if isinstance(value, (list, tuple)):
        return tuple(str(v).strip() for v in value if _has_value(v))
    return ()


def _resolve_company(value: Any, companies: Dict[str, Dict[str, Any]]) -> CompanyRef:
    # Inline/populated company dict, or an id referencing the companies index.
    record: Optional[Dict[str, Any]] = None
    if isinstance(value, dict):
        record = value
    elif value is not None:
        record = companies.get(str(value))
    if not record:
        return CompanyRef()
    logo = record.get("logo")
    return CompanyRef(
        name=str(record.get("name") or "").strip(),
        website=str(record.get("website") or "").strip(),
        logo=str(logo) if _has_value(logo) else None,
    )
