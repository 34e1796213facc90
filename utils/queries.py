"""Derived views over already-retrieved complaint and project lists."""
from __future__ import annotations

from typing import Iterable

from models import COMPLAINT_CATEGORIES, Complaint, Project

_ALL = {"", "all"}


def _needle(value) -> str:
    return str(value or "").strip().lower()


def _category_matches(record_category: str, wanted: str, labels: dict[str, str] | None = None) -> bool:
    candidates = {record_category.lower()}
    if labels and record_category in labels:
        candidates.add(labels[record_category].lower())
    return wanted in candidates


def filter_complaints(complaints: Iterable[Complaint], search=None, category=None) -> list[Complaint]:
    """Substring match on description or id, AND an exact category match, both case-insensitive."""
    text = _needle(search)
    wanted = _needle(category)
    matched = []
    for complaint in complaints:
        if wanted not in _ALL and not _category_matches(complaint.category, wanted, COMPLAINT_CATEGORIES):
            continue
        if text and text not in complaint.description.lower() and text not in str(complaint.id).lower():
            continue
        matched.append(complaint)
    return matched


def filter_projects(projects: Iterable[Project], search=None, category=None) -> list[Project]:
    text = _needle(search)
    wanted = _needle(category)
    return [
        project
        for project in projects
        if (wanted in _ALL or _category_matches(project.category, wanted))
        and (not text or text in project.title.lower())
    ]


def sort_projects(projects: Iterable[Project], order: str = "recent") -> list[Project]:
    if (order or "recent").lower() == "progress":
        return sorted(projects, key=lambda p: (p.progress_percent or 0, p.created_at), reverse=True)
    return sorted(projects, key=lambda p: p.created_at, reverse=True)
