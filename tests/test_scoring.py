from solutions_agent.catalog import CatalogDocument
from solutions_agent.keywords import KeywordBag, extract
from solutions_agent.retrieval import SearchIntent, detect_intent
from solutions_agent.scoring import (
    DEFAULT_RULES,
    RelevanceScorer,
    ScoringRule,
    domain_industry_rule,
    keyword_overlap_rule,
    subdomain_category_rule,
    subdomain_text_rule,
)

IMAGING_DOC = CatalogDocument(
    id="img",
    title="CT Triage",
    short_description="Flags bleeds on CT",
    category="Medical Imaging",
    industry="Healthcare",
)
RETAIL_DOC = CatalogDocument(id="ret", title="Shelf Analytics", category="Retail Ops", industry="Retail")

DOMAIN_INTENT = SearchIntent(domain_active=True)
IMAGING_INTENT = SearchIntent(domain_active=True, subdomain_active=True)


def test_domain_rule_rewards_and_penalizes():
    assert domain_industry_rule(IMAGING_DOC, KeywordBag(), DOMAIN_INTENT) == 3
    assert domain_industry_rule(RETAIL_DOC, KeywordBag(), DOMAIN_INTENT) == -2
    assert domain_industry_rule(RETAIL_DOC, KeywordBag(), SearchIntent()) == 0


def test_subdomain_rules():
    assert subdomain_category_rule(IMAGING_DOC, KeywordBag(), IMAGING_INTENT) == 3
    assert subdomain_text_rule(IMAGING_DOC, KeywordBag(), IMAGING_INTENT) == 2
    assert subdomain_category_rule(IMAGING_DOC, KeywordBag(), DOMAIN_INTENT) == 0
    assert subdomain_text_rule(RETAIL_DOC, KeywordBag(), IMAGING_INTENT) == 0


def test_keyword_overlap_counts_each_solution_keyword():
    bag = KeywordBag(solution=("analytics", "shelf", "chatbot"))
    assert keyword_overlap_rule(RETAIL_DOC, bag, SearchIntent()) == 2


def test_score_sums_all_rules():
    scorer = RelevanceScorer()
    assert scorer.score(IMAGING_DOC, KeywordBag(), IMAGING_INTENT) == 8
    assert scorer.score(RETAIL_DOC, KeywordBag(solution=("analytics",)), DOMAIN_INTENT) == -1


def test_custom_rule_table():
    scorer = RelevanceScorer(rules=(ScoringRule("flat", lambda doc, bag, intent: 1),))
    assert scorer.score(RETAIL_DOC, KeywordBag(), SearchIntent()) == 1
    assert len(DEFAULT_RULES) == 4


def test_filter_and_rank_drops_non_positive_scores():
    scorer = RelevanceScorer()
    ranked = scorer.filter_and_rank([RETAIL_DOC, IMAGING_DOC], KeywordBag(), IMAGING_INTENT)
    assert ranked == [IMAGING_DOC]


def test_filter_and_rank_orders_by_score_and_caps(documents):
    text = "For our hospital radiology department we need imaging triage"
    scorer = RelevanceScorer()
    ranked = scorer.filter_and_rank(documents, extract(text), detect_intent(text))
    assert len(ranked) == 5
    assert [doc.id for doc in ranked[:2]] == ["s-001", "s-002"]
    assert all(doc.industry == "Healthcare" for doc in ranked)


def test_equal_scores_keep_retrieval_order(documents):
    healthcare = [doc for doc in documents if doc.industry == "Healthcare"]
    scorer = RelevanceScorer(max_ranked=10)
    ranked = scorer.filter_and_rank(list(reversed(healthcare)), KeywordBag(), DOMAIN_INTENT)
    assert ranked == list(reversed(healthcare))


def test_nothing_survives_without_signals(documents):
    assert RelevanceScorer().filter_and_rank(documents, KeywordBag(), SearchIntent()) == []
