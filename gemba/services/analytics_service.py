"""
Gemba Issue Tracker
Analytics Service: keyword search, dashboards and reports.

Search flow:
    question → KeywordExtractor → RelevanceScorer.apply(select) → ranked rows

Database errors propagate to the caller; an empty result always means
"nothing matched", never "the query failed".
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func, select

from gemba.ai.keyword_extractor import KeywordExtractor
from gemba.ai.relevance import RelevanceScorer
from gemba.core.exceptions import ValidationError
from gemba.models import db
from gemba.models.issue import Issue, STATUS_ESCALATED, STATUS_OPEN
from gemba.models.reference import IssueCategory
from gemba.services import report_engine
from gemba.utils.helpers import date_bounds

logger = logging.getLogger(__name__)

NO_KEYWORDS_MESSAGE = "No meaningful keywords found in the query"
RECENT_ISSUES = 10

_default_extractor = KeywordExtractor()


def _search_limit() -> int:
    return current_app.config.get("SEARCH_RESULT_LIMIT", 20)


def search_issues(question, extractor: KeywordExtractor | None = None) -> dict:
    """Rank issues against a free-text question.

    Returns:
        {query, keywords, total_results, results[]} and, when the question
        has no usable keywords, an empty result list plus ``message``.

    Raises:
        ValidationError: question missing, blank or not a string.
    """
    if not isinstance(question, str) or not question.strip():
        raise ValidationError("Question is required", details={"question": "required"})

    keywords = list((extractor or _default_extractor).extract(question))
    if not keywords:
        logger.debug("Search question produced no keywords")
        return {
            "query": question,
            "keywords": [],
            "total_results": 0,
            "results": [],
            "message": NO_KEYWORDS_MESSAGE,
        }

    scorer = RelevanceScorer(keywords, limit=_search_limit())
    stmt = scorer.apply(
        select(Issue, IssueCategory.name.label("category_name"))
        .outerjoin(IssueCategory, Issue.category_id == IssueCategory.id)
    )
    rows = db.session.execute(stmt).all()

    results = [
        {
            "id": issue.id,
            "issue_number": issue.issue_number,
            "title": issue.title,
            "description": issue.description,
            "status": issue.status,
            "level": issue.level,
            "priority": issue.priority,
            "category": category_name,
            "relevance_score": int(score),
        }
        for issue, category_name, score in rows
    ]
    logger.info("Search: %d keyword(s), %d result(s)", len(keywords), len(results))
    return {
        "query": question,
        "keywords": keywords,
        "total_results": len(results),
        "results": results,
    }


def generate_report(report_type, from_date=None, to_date=None) -> dict:
    return report_engine.generate_report(report_type, from_date, to_date)


# ═════════════════════════════════════════════════════════════════════════════
# Dashboard aggregates
# ═════════════════════════════════════════════════════════════════════════════


def _count(*criteria) -> int:
    stmt = select(func.count(Issue.id))
    for criterion in criteria:
        stmt = stmt.where(criterion)
    return db.session.execute(stmt).scalar() or 0


def dashboard() -> dict:
    """Headline counts plus the most recent issues."""
    by_status = db.session.execute(
        select(Issue.status, func.count(Issue.id)).group_by(Issue.status).order_by(Issue.status)
    ).all()
    by_level = db.session.execute(
        select(Issue.level, func.count(Issue.id)).group_by(Issue.level).order_by(Issue.level)
    ).all()
    recent = db.session.execute(
        select(Issue).order_by(Issue.created_at.desc(), Issue.issue_number.desc()).limit(RECENT_ISSUES)
    ).scalars().all()

    return {
        "total_issues": _count(),
        "open_issues": _count(Issue.status == STATUS_OPEN),
        "escalated_issues": _count(Issue.status == STATUS_ESCALATED),
        "by_status": [{"status": s, "count": c} for s, c in by_status],
        "by_level": [{"level": lvl, "count": c} for lvl, c in by_level],
        "recent_issues": [
            {
                "id": i.id,
                "issue_number": i.issue_number,
                "title": i.title,
                "status": i.status,
                "level": i.level,
                "priority": i.priority,
                "category_name": i.category.name if i.category else None,
                "created_at": i.created_at.isoformat() if i.created_at else None,
            }
            for i in recent
        ],
    }


def category_breakdown() -> dict:
    """All-time issue count and share per category."""
    return report_engine.category_breakdown_stats()


def resolution_times(from_date=None, to_date=None) -> dict:
    """Resolution hours overall and per category, filtered on resolved_at."""
    lower, upper = date_bounds(from_date, to_date)
    return report_engine.resolution_time_stats(lower, upper)
