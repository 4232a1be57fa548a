"""
CLASSIFY MODULE - Map a free-form question to a known report

Only a closed set of question shapes is supported. Each rule is a predicate
over the question text; rules are tried top to bottom and the first one that
matches decides the intent. Order matters: "compare revenue trend for
electronics and furniture" is a category comparison, not a revenue trend,
because the comparison rule comes first.

A rule is a conjunction of keyword groups: every group must be present
somewhere in the question, in any order.
"""

import re
from typing import Callable, List, Tuple

from app.core.schemas import QuestionIntent


Predicate = Callable[[str], bool]


def _matches(*patterns: str) -> Predicate:
    """Predicate that is true when any of the patterns is found (case-insensitive)."""
    compiled = [re.compile(pattern, re.IGNORECASE) for pattern in patterns]

    def predicate(question: str) -> bool:
        return any(regex.search(question) for regex in compiled)

    return predicate


def _all(*predicates: Predicate) -> Predicate:
    """Predicate that is true when every one of the predicates holds."""

    def predicate(question: str) -> bool:
        return all(check(question) for check in predicates)

    return predicate


def _any(*predicates: Predicate) -> Predicate:
    def predicate(question: str) -> bool:
        return any(check(question) for check in predicates)

    return predicate


# (predicate, intent) in priority order
RULES: List[Tuple[Predicate, QuestionIntent]] = [
    (
        _all(
            _matches(r"compare", r"difference"),
            _matches(r"sales", r"revenue", r"amount"),
            _matches(r"electronics"),
            _matches(r"furniture"),
        ),
        QuestionIntent.CATEGORY_COMPARISON,
    ),
    (
        _all(_matches(r"revenue"), _matches(r"trend", r"over time")),
        QuestionIntent.REVENUE_TREND,
    ),
    (
        # spend, spends, spending, spent, spender
        _all(_matches(r"top"), _matches(r"customer"), _matches(r"spen[dt]")),
        QuestionIntent.CUSTOMER_SPENDING,
    ),
    (
        _all(
            _matches(r"most", r"top"),
            _matches(r"popular", r"selling"),
            _matches(r"product"),
        ),
        QuestionIntent.PRODUCT_POPULARITY,
    ),
    (
        _all(_matches(r"order"), _matches(r"status")),
        QuestionIntent.ORDER_STATUS,
    ),
    (
        _matches(r"data quality", r"dirty data", r"invalid"),
        QuestionIntent.DATA_QUALITY,
    ),
    (
        _any(
            _all(
                _matches(r"customer base", r"customer growth", r"customer acquisition"),
                _matches(r"over time", r"trend"),
            ),
            _matches(r"how has our customer base grown"),
        ),
        QuestionIntent.CUSTOMER_GROWTH,
    ),
]


def classify(question: str) -> QuestionIntent:
    """
    Return the intent of the first matching rule, or GENERAL.

    Examples:
        "Compare sales between Electronics and Furniture" → CATEGORY_COMPARISON
        "What is the trend in revenue?" → REVENUE_TREND
        "What's the weather?" → GENERAL
    """
    for predicate, intent in RULES:
        if predicate(question):
            return intent
    return QuestionIntent.GENERAL
