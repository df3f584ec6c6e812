"""Relevance rules (core domain).

A post is relevant unless one of four ordered reject rules fires. Each rule is
a plain substring table; tables are built once at startup and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

INTERNSHIP = "internship"
STUDENT_ONLY = "student_only"
EXPERIENCE_REQUIRED = "experience_required"
NON_2025_COHORT = "non_2025_cohort"

# Evaluation order matters: the first rule that matches is the reported reason.
RULE_ORDER = (INTERNSHIP, STUDENT_ONLY, EXPERIENCE_REQUIRED, NON_2025_COHORT)

DEFAULT_TABLES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    INTERNSHIP: ("intern", "internship", "trainee", "apprentice"),
    STUDENT_ONLY: (
        "final year",
        "final-year",
        "student",
        "students only",
        "currently pursuing",
        "pursuing degree",
        "campus hiring",
        "on campus",
        "college student",
    ),
    EXPERIENCE_REQUIRED: (
        "2+ year",
        "3+ year",
        "4+ year",
        "minimum 2 year",
        "minimum 3 year",
        "2 years experience",
        "3 years experience",
        "experienced candidate",
        "experienced only",
    ),
    # Only these cohorts are rejected; "2026 batch" or a post with no year at
    # all is accepted.
    NON_2025_COHORT: (
        "2024 batch",
        "2023 batch",
        "2022 batch",
        "2021 batch",
        "2022-2024",
        "2021-2023",
    ),
})


@dataclass(frozen=True)
class ClassifierTables:
    """Immutable keyword tables, one per reject rule."""

    internship: Tuple[str, ...]
    student_only: Tuple[str, ...]
    experience_required: Tuple[str, ...]
    non_2025_cohort: Tuple[str, ...]

    def ordered(self) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
        return tuple((name, getattr(self, name)) for name in RULE_ORDER)


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one post."""

    relevant: bool
    rule_name: Optional[str] = None
    keyword: Optional[str] = None

    @property
    def reason(self) -> str:
        if self.relevant:
            return "no reject rule matched"
        return f"{self.rule_name}: {self.keyword}"


def _normalize_keywords(keywords: Iterable[str]) -> Tuple[str, ...]:
    return tuple(k.lower() for k in keywords if k)


def build_tables(classifier_config: Optional[Mapping[str, Iterable[str]]] = None) -> ClassifierTables:
    """Build classifier tables from the ``classifier`` config section.

    Any rule missing from the config keeps its default table. Keywords are
    lower-cased here so matching only lower-cases the message.
    """

    classifier_config = classifier_config or {}
    unknown = set(classifier_config) - set(RULE_ORDER)
    if unknown:
        raise ValueError(f"Unknown classifier rule(s): {', '.join(sorted(unknown))}")

    tables = {
        name: _normalize_keywords(classifier_config.get(name, DEFAULT_TABLES[name]))
        for name in RULE_ORDER
    }
    return ClassifierTables(**tables)


def classify(text: str, tables: ClassifierTables) -> Classification:
    """Evaluate the reject rules in order; the first hit short-circuits."""

    lowered = text.lower()
    for rule_name, keywords in tables.ordered():
        for keyword in keywords:
            if keyword in lowered:
                return Classification(relevant=False, rule_name=rule_name, keyword=keyword)
    return Classification(relevant=True)


def is_relevant(text: str, tables: ClassifierTables) -> bool:
    return classify(text, tables).relevant
