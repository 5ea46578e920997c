"""
Keyword relevance scoring for issue search.

score = Σ over keywords (title_weight if keyword in title) + (description_weight
if keyword in description); matching is case-insensitive substring
containment. An issue qualifies when at least one keyword hits either field.
Results are ordered by score desc, then created_at desc, and capped.

The same rule exists twice:
    - rank(): in-memory, for already-loaded objects
    - apply(): compiled into CASE/ILIKE expressions so ordering and the
      limit run in the database. Keywords are always bound parameters.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import case, desc, or_

from gemba.models.issue import Issue

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _like_pattern(keyword: str) -> str:
    escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _sort_time(value):
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ScoredIssue:
    issue: object
    score: int


class RelevanceScorer:
    """Weighted keyword scorer.

    Args:
        keywords: Non-empty keyword sequence (duplicates count every time).
        title_weight: Points per keyword found in the title.
        description_weight: Points per keyword found in the description.
        limit: Maximum number of ranked results.
    """

    def __init__(self, keywords: Iterable[str], title_weight: int = 3,
                 description_weight: int = 1, limit: int = 20):
        self.keywords: tuple[str, ...] = tuple(k.lower() for k in keywords)
        if not self.keywords:
            raise ValueError("RelevanceScorer needs at least one keyword")
        self.title_weight = title_weight
        self.description_weight = description_weight
        self.limit = limit

    # ── In-memory ────────────────────────────────────────────────────────

    def score(self, title: str | None, description: str | None) -> int:
        title_l = (title or "").lower()
        desc_l = (description or "").lower()
        total = 0
        for kw in self.keywords:
            if kw in title_l:
                total += self.title_weight
            if kw in desc_l:
                total += self.description_weight
        return total

    def matches(self, title: str | None, description: str | None) -> bool:
        title_l = (title or "").lower()
        desc_l = (description or "").lower()
        return any(kw in title_l or kw in desc_l for kw in self.keywords)

    def rank(self, issues: Iterable) -> list[ScoredIssue]:
        scored = [
            ScoredIssue(issue, self.score(issue.title, issue.description))
            for issue in issues
            if self.matches(issue.title, issue.description)
        ]
        # Two stable sorts: newest first, then by score.
        scored.sort(key=lambda s: _sort_time(getattr(s.issue, "created_at", None)), reverse=True)
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[: self.limit]

    # ── SQL ──────────────────────────────────────────────────────────────

    def score_expression(self, title_col=None, description_col=None):
        title_col = Issue.title if title_col is None else title_col
        description_col = Issue.description if description_col is None else description_col
        terms = []
        for kw in self.keywords:
            pattern = _like_pattern(kw)
            terms.append(case((title_col.ilike(pattern, escape="\\"), self.title_weight), else_=0))
            terms.append(case((description_col.ilike(pattern, escape="\\"), self.description_weight), else_=0))
        expr = terms[0]
        for term in terms[1:]:
            expr = expr + term
        return expr

    def match_clause(self, title_col=None, description_col=None):
        title_col = Issue.title if title_col is None else title_col
        description_col = Issue.description if description_col is None else description_col
        return or_(*[
            or_(
                title_col.ilike(_like_pattern(kw), escape="\\"),
                description_col.ilike(_like_pattern(kw), escape="\\"),
            )
            for kw in self.keywords
        ])

    def apply(self, stmt, created_at_col=None):
        """Filter, score, order and limit a ``select()`` over issues.

        Adds a ``relevance_score`` column to the statement's result rows.
        """
        created_at_col = Issue.created_at if created_at_col is None else created_at_col
        score = self.score_expression().label("relevance_score")
        return (
            stmt.add_columns(score)
            .where(self.match_clause())
            .order_by(desc(score), created_at_col.desc())
            .limit(self.limit)
        )


def rank_issues(keywords: Sequence[str], issues: Iterable, limit: int = 20) -> list[ScoredIssue]:
    """Shortcut for ``RelevanceScorer(keywords, limit=limit).rank(issues)``."""
    return RelevanceScorer(keywords, limit=limit).rank(issues)
