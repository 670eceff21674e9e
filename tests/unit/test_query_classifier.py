import pytest

from ca_assistant.core.config import Settings
from ca_assistant.pipeline.classifier import QueryClassifier
from ca_assistant.schemas.pipeline import ComplexityTier


@pytest.fixture
def classifier() -> QueryClassifier:
    return QueryClassifier(Settings().complexity_patterns)


@pytest.mark.parametrize(
    "query",
    [
        "How do I file an appeal against an ITAT order?",
        "Statutory AUDIT requirements for a private company",
        "Reply to a GST notice under section 73",
        "Transfer   pricing documentation thresholds",
        "Cross-border royalty withholding",
        "Tax computation for a salaried employee",
    ],
)
def test_complex_queries(classifier: QueryClassifier, query: str) -> None:
    assert classifier.classify(query) is ComplexityTier.COMPLEX


@pytest.mark.parametrize(
    "query",
    [
        "What is the GST rate on restaurant services?",
        "Due date for filing ITR-1",
        "",
    ],
)
def test_simple_queries(classifier: QueryClassifier, query: str) -> None:
    assert classifier.classify(query) is ComplexityTier.SIMPLE


def test_custom_pattern_table() -> None:
    classifier = QueryClassifier([r"\bfema\b"])
    assert classifier.classify("FEMA compounding") is ComplexityTier.COMPLEX
    assert classifier.classify("Appeal timelines") is ComplexityTier.SIMPLE


@pytest.mark.parametrize("query", ["Appeal before CIT(A)", "What is GST?", "", "notice NOTICE notice"])
def test_classification_is_deterministic(classifier: QueryClassifier, query: str) -> None:
    results = {classifier.classify(query) for _ in range(5)}
    assert len(results) == 1
    assert results.pop() in set(ComplexityTier)
