"""
Gemba Issue Tracker
Narrative Report Engine.

Three report kinds, each an aggregate plus a summary sentence built from
fixed thresholds:

  - resolution-times     avg/min/max hours from issue creation to resolution
  - category-breakdown   issue counts and share per category
  - escalation-analysis  escalations in range vs. all issues ever raised

All reports accept optional from_date / to_date (inclusive). A date-only
to_date covers the whole day. Each report filters on its own timestamp:
resolved_at, created_at and escalated_at respectively.

Percentages and rates are rounded half-up to 2 decimals:
floor(count / total * 10000 + 0.5) / 100.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import func, select

from gemba.core.exceptions import ValidationError
from gemba.models import db
from gemba.models.issue import Issue, IssueEscalation, IssueResolution
from gemba.models.reference import IssueCategory
from gemba.utils.helpers import as_utc, date_bounds

logger = logging.getLogger(__name__)

REPORT_TYPES = ("resolution-times", "category-breakdown", "escalation-analysis")
UNCATEGORIZED = "Uncategorized"


# ═════════════════════════════════════════════════════════════════════════════
# Number helpers
# ═════════════════════════════════════════════════════════════════════════════

def percentage(count: int, total: int) -> float:
    """Share of ``count`` in ``total`` as a percentage, rounded half-up to 2 dp."""
    if not total:
        return 0
    return math.floor(count / total * 10000 + 0.5) / 100


def _round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def _fmt_number(value) -> str:
    """Render 50.0 as "50" and 33.33 as "33.33" for summary text."""
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


# ═════════════════════════════════════════════════════════════════════════════
# Narratives (pure)
# ═════════════════════════════════════════════════════════════════════════════

def resolution_times_summary(total_resolved: int, avg_hours: float) -> str:
    summary = (
        f"Resolution Times Report: {total_resolved} issues resolved with an average "
        f"resolution time of {avg_hours:.1f} hours. "
    )
    if avg_hours > 48:
        summary += (
            "Average resolution time exceeds 48 hours, suggesting process improvement "
            "opportunities. Consider implementing triage workflows to prioritize critical issues."
        )
    elif avg_hours > 24:
        summary += (
            "Resolution times are moderate. Focus on reducing outliers to bring down "
            "the average further."
        )
    else:
        summary += (
            "Resolution times are within acceptable ranges. Continue monitoring for "
            "any degradation."
        )
    return summary


def category_breakdown_summary(total: int, breakdown: list[dict]) -> str:
    summary = f"Category Breakdown Report: {total} total issues across {len(breakdown)} categories. "
    if not breakdown:
        return summary
    top = breakdown[0]
    summary += (
        f'The most common category is "{top["category"]}" with {top["count"]} issues '
        f'({_fmt_number(top["percentage"])}%). '
    )
    if top["percentage"] > 40:
        summary += (
            "This category represents a significant concentration of issues and should "
            "be prioritized for systematic improvement."
        )
    else:
        summary += "Issue distribution is relatively balanced across categories."
    return summary


def escalation_summary(total_escalations: int, total_issues: int, rate: float) -> str:
    summary = (
        f"Escalation Analysis Report: {total_escalations} escalations out of {total_issues} "
        f"total issues ({_fmt_number(rate)}% escalation rate). "
    )
    if rate > 30:
        summary += (
            "High escalation rate indicates issues are not being resolved at their initial "
            "level. Review L1 team capabilities and training needs."
        )
    elif rate > 15:
        summary += (
            "Moderate escalation rate. Identify common escalation patterns to improve "
            "first-level resolution capability."
        )
    else:
        summary += (
            "Escalation rate is within healthy bounds, indicating effective issue "
            "resolution at initial levels."
        )
    return summary


# ═════════════════════════════════════════════════════════════════════════════
# Aggregates
# ═════════════════════════════════════════════════════════════════════════════

def _between(stmt, column, lower, upper):
    if lower is not None:
        stmt = stmt.where(column >= lower)
    if upper is not None:
        stmt = stmt.where(column <= upper)
    return stmt


def resolution_time_stats(lower=None, upper=None) -> dict:
    """Hours from issue creation to resolution, overall and per category.

    Durations are computed in Python so SQLite and PostgreSQL agree.
    """
    stmt = (
        select(IssueResolution.resolved_at, Issue.created_at, IssueCategory.name)
        .join(Issue, IssueResolution.issue_id == Issue.id)
        .outerjoin(IssueCategory, Issue.category_id == IssueCategory.id)
    )
    stmt = _between(stmt, IssueResolution.resolved_at, lower, upper)

    hours_all = []
    per_category = defaultdict(list)
    for resolved_at, created_at, category in db.session.execute(stmt):
        if resolved_at is None or created_at is None:
            continue
        hours = (as_utc(resolved_at) - as_utc(created_at)).total_seconds() / 3600
        hours_all.append(hours)
        per_category[category or UNCATEGORIZED].append(hours)

    by_category = [
        {"category": name, "count": len(values), "avg_hours": _round2(sum(values) / len(values))}
        for name, values in per_category.items()
    ]
    by_category.sort(key=lambda row: (-row["avg_hours"], row["category"]))

    return {
        "total_resolved": len(hours_all),
        "avg_resolution_hours": _round2(sum(hours_all) / len(hours_all)) if hours_all else 0,
        "min_resolution_hours": _round2(min(hours_all)) if hours_all else 0,
        "max_resolution_hours": _round2(max(hours_all)) if hours_all else 0,
        "by_category": by_category,
    }


def category_breakdown_stats(lower=None, upper=None) -> dict:
    """Issue count and percentage per category, largest first."""
    total = db.session.execute(
        _between(select(func.count(Issue.id)), Issue.created_at, lower, upper)
    ).scalar() or 0

    stmt = (
        select(IssueCategory.name, func.count(Issue.id))
        .select_from(Issue)
        .outerjoin(IssueCategory, Issue.category_id == IssueCategory.id)
        .group_by(IssueCategory.name)
    )
    stmt = _between(stmt, Issue.created_at, lower, upper)

    breakdown = [
        {"category": name or UNCATEGORIZED, "count": count, "percentage": percentage(count, total)}
        for name, count in db.session.execute(stmt)
    ]
    breakdown.sort(key=lambda row: (-row["count"], row["category"]))
    return {"total": total, "breakdown": breakdown}


def escalation_stats(lower=None, upper=None) -> dict:
    """Escalations in range, the rate against all issues, and per-transition counts."""
    total_escalations = db.session.execute(
        _between(select(func.count(IssueEscalation.id)), IssueEscalation.escalated_at, lower, upper)
    ).scalar() or 0
    # Denominator is every issue, not just those in range
    total_issues = db.session.execute(select(func.count(Issue.id))).scalar() or 0

    count = func.count(IssueEscalation.id).label("count")
    stmt = (
        select(IssueEscalation.from_level, IssueEscalation.to_level, count)
        .group_by(IssueEscalation.from_level, IssueEscalation.to_level)
        .order_by(count.desc(), IssueEscalation.from_level, IssueEscalation.to_level)
    )
    stmt = _between(stmt, IssueEscalation.escalated_at, lower, upper)

    return {
        "total_escalations": total_escalations,
        "total_issues": total_issues,
        "escalation_rate": percentage(total_escalations, total_issues),
        "by_level_transition": [
            {"from_level": f, "to_level": t, "count": c}
            for f, t, c in db.session.execute(stmt)
        ],
    }


# ═════════════════════════════════════════════════════════════════════════════
# REPORT GENERATOR
# ═════════════════════════════════════════════════════════════════════════════

class ReportGenerator:
    """Dispatches a report type to its runner and wraps the result."""

    _RUNNERS: dict = {}

    @classmethod
    def register(cls, report_type: str):
        """Decorator to register a runner ``fn(lower, upper) -> (data, summary)``."""
        def decorator(fn):
            cls._RUNNERS[report_type] = fn
            return fn
        return decorator

    @classmethod
    def run(cls, report_type, from_date=None, to_date=None) -> dict:
        if not report_type:
            raise ValidationError(
                "report_type is required (resolution-times, category-breakdown, or escalation-analysis)",
                details={"report_type": "required"},
            )
        runner = cls._RUNNERS.get(report_type) if isinstance(report_type, str) else None
        if runner is None:
            raise ValidationError(
                f"report_type must be one of: {', '.join(REPORT_TYPES)}",
                details={"report_type": "invalid"},
            )

        lower, upper = date_bounds(from_date, to_date)
        data, summary = runner(lower, upper)

        logger.info("Report generated: %s", report_type, extra={"report_type": report_type})
        return {
            "report_type": report_type,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "from_date": from_date or None,
            "to_date": to_date or None,
            "summary": summary,
            "data": data,
        }


@ReportGenerator.register("resolution-times")
def _resolution_times(lower, upper):
    data = resolution_time_stats(lower, upper)
    return data, resolution_times_summary(data["total_resolved"], data["avg_resolution_hours"])


@ReportGenerator.register("category-breakdown")
def _category_breakdown(lower, upper):
    data = category_breakdown_stats(lower, upper)
    return data, category_breakdown_summary(data["total"], data["breakdown"])


@ReportGenerator.register("escalation-analysis")
def _escalation_analysis(lower, upper):
    data = escalation_stats(lower, upper)
    summary = escalation_summary(data["total_escalations"], data["total_issues"], data["escalation_rate"])
    return data, summary


def generate_report(report_type, from_date=None, to_date=None) -> dict:
    """Build ``{report_type, generated_at, from_date, to_date, summary, data}``.

    Raises:
        ValidationError: Missing/unknown report_type or unparsable dates.
    """
    return ReportGenerator.run(report_type, from_date, to_date)
