"""Column types that normalize legacy row formats once, at the persistence boundary.

Older rows store period lists as comma separated strings ("3,4"), bare integers or
lists of numeric strings, and grade lists as labels like "7/8" or "Grade 6".
Reading through these types always yields sorted, de-duplicated lists.
"""
from __future__ import annotations

import re
from typing import Any

from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator

_TOKEN_SPLIT = re.compile(r"[,;/|\s]+")
_DIGITS = re.compile(r"\d+")


def normalize_periods(value: Any) -> list[int]:
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, (int, float)):
        number = int(value)
        return [number] if number > 0 else []
    if isinstance(value, str):
        return sorted({int(token) for token in _DIGITS.findall(value) if int(token) > 0})
    if isinstance(value, (list, tuple, set, frozenset)):
        periods: set[int] = set()
        for item in value:
            periods.update(normalize_periods(item))
        return sorted(periods)
    raise ValueError(f"Unsupported period value: {value!r}")


def _grade_sort_key(label: str) -> tuple[int, int, str]:
    if label.isdigit():
        return (0, int(label), label)
    return (1, 0, label)


def normalize_grades(value: Any) -> list[str]:
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, (int, float)):
        return [str(int(value))]
    if isinstance(value, str):
        labels: set[str] = set()
        cleaned = re.sub(r"(?i)\bgrades?\b", " ", value)
        for token in _TOKEN_SPLIT.split(cleaned):
            token = token.strip().lower()
            if not token:
                continue
            labels.add(str(int(token)) if token.isdigit() else token)
        return sorted(labels, key=_grade_sort_key)
    if isinstance(value, (list, tuple, set, frozenset)):
        labels = set()
        for item in value:
            labels.update(normalize_grades(item))
        return sorted(labels, key=_grade_sort_key)
    raise ValueError(f"Unsupported grade value: {value!r}")


class PeriodList(TypeDecorator):
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return normalize_periods(value)

    def process_result_value(self, value, dialect):
        return normalize_periods(value)


class GradeList(TypeDecorator):
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return normalize_grades(value)

    def process_result_value(self, value, dialect):
        return normalize_grades(value)
