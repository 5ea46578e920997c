"""
Report engine tests: aggregates, rounding, date bounds and narrative thresholds.
"""

from datetime import datetime, timedelta, timezone

import pytest

from gemba.core.exceptions import ValidationError
from gemba.models import db
from gemba.models.reference import IssueCategory
from gemba.services import issue_lifecycle as lifecycle
from gemba.services import report_engine as reports

T0 = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def _categories(*names):
    rows = [IssueCategory(name=n) for n in names]
    db.session.add_all(rows)
    db.session.commit()
    return {r.name: r.id for r in rows}


def _resolved_issue(make_issue, hours, created=T0, **data):
    issue = make_issue(**data)
    issue.created_at = created
    db.session.commit()
    _, resolution = lifecycle.resolve_issue(issue.id, {"resolution": "done"}, "u1")
    resolution.resolved_at = created + timedelta(hours=hours)
    db.session.commit()
    return issue


# ═══════════════════════════════════════════════════════════════════════════
# Helpers and narratives
# ═══════════════════════════════════════════════════════════════════════════


class TestPercentage:

    def test_half_up(self):
        assert reports.percentage(1, 3) == 33.33
        assert reports.percentage(2, 3) == 66.67
        assert reports.percentage(1, 8) == 12.5

    def test_zero_total(self):
        assert reports.percentage(0, 0) == 0


class TestNarratives:

    @pytest.mark.parametrize("avg, fragment", [
        (48.01, "exceeds 48 hours"),
        (48.0, "moderate"),
        (24.5, "moderate"),
        (24.0, "within acceptable ranges"),
    ])
    def test_resolution_thresholds(self, avg, fragment):
        assert fragment in reports.resolution_times_summary(3, avg)

    def test_resolution_headline(self):
        text = reports.resolution_times_summary(4, 12.345)
        assert text.startswith(
            "Resolution Times Report: 4 issues resolved with an average resolution time of 12.3 hours. "
        )

    @pytest.mark.parametrize("rate, fragment", [
        (30.01, "High escalation rate"),
        (30.0, "Moderate escalation rate"),
        (15.01, "Moderate escalation rate"),
        (15.0, "within healthy bounds"),
    ])
    def test_escalation_thresholds(self, rate, fragment):
        assert fragment in reports.escalation_summary(1, 1, rate)

    def test_escalation_headline_number_format(self):
        text = reports.escalation_summary(1, 2, 50.0)
        assert text.startswith("Escalation Analysis Report: 1 escalations out of 2 total issues (50% escalation rate). ")

    def test_category_concentration(self):
        text = reports.category_breakdown_summary(5, [{"category": "Safety", "count": 3, "percentage": 60.0}])
        assert 'The most common category is "Safety" with 3 issues (60%). ' in text
        assert "significant concentration" in text

    def test_category_balanced_at_forty(self):
        text = reports.category_breakdown_summary(5, [{"category": "Safety", "count": 2, "percentage": 40.0}])
        assert "relatively balanced" in text

    def test_category_empty_has_headline_only(self):
        assert reports.category_breakdown_summary(0, []) == (
            "Category Breakdown Report: 0 total issues across 0 categories. "
        )


# ═══════════════════════════════════════════════════════════════════════════
# Reports against the database
# ═══════════════════════════════════════════════════════════════════════════


class TestValidation:

    def test_missing_type(self):
        with pytest.raises(ValidationError, match="report_type is required"):
            reports.generate_report(None)

    def test_unknown_type(self):
        with pytest.raises(ValidationError, match="resolution-times, category-breakdown, escalation-analysis"):
            reports.generate_report("weekly")

    def test_bad_date(self):
        with pytest.raises(ValidationError):
            reports.generate_report("category-breakdown", from_date="yesterday")

    def test_envelope_fields(self):
        report = reports.generate_report("category-breakdown", from_date="2024-01-01")
        assert set(report) == {"report_type", "generated_at", "from_date", "to_date", "summary", "data"}
        assert report["from_date"] == "2024-01-01"
        assert report["to_date"] is None


class TestResolutionTimes:

    def test_stats(self, make_issue):
        cats = _categories("Equipment", "Quality")
        _resolved_issue(make_issue, 10, category_id=cats["Equipment"])
        _resolved_issue(make_issue, 30, category_id=cats["Equipment"])
        _resolved_issue(make_issue, 50, category_id=cats["Quality"])

        report = reports.generate_report("resolution-times")
        data = report["data"]
        assert data["total_resolved"] == 3
        assert data["avg_resolution_hours"] == 30.0
        assert data["min_resolution_hours"] == 10.0
        assert data["max_resolution_hours"] == 50.0
        assert [c["category"] for c in data["by_category"]] == ["Quality", "Equipment"]
        assert "moderate" in report["summary"]

    def test_empty(self):
        data = reports.generate_report("resolution-times")["data"]
        assert data["total_resolved"] == 0
        assert data["avg_resolution_hours"] == 0

    def test_date_only_to_date_includes_whole_day(self, make_issue):
        # resolved 2024-05-01 20:00
        _resolved_issue(make_issue, 12)
        data = reports.generate_report("resolution-times", to_date="2024-05-01")["data"]
        assert data["total_resolved"] == 1
        data = reports.generate_report("resolution-times", to_date="2024-04-30")["data"]
        assert data["total_resolved"] == 0

    def test_from_after_to_rejected(self):
        with pytest.raises(ValidationError):
            reports.generate_report("resolution-times", from_date="2024-05-02", to_date="2024-05-01")


class TestCategoryBreakdown:

    def test_percentages_sum_to_hundred(self, make_issue):
        cats = _categories("Equipment", "Quality", "Safety")
        for name, n in (("Equipment", 1), ("Quality", 1), ("Safety", 1)):
            for _ in range(n):
                make_issue(category_id=cats[name])

        data = reports.generate_report("category-breakdown")["data"]
        assert data["total"] == 3
        total_pct = sum(row["percentage"] for row in data["breakdown"])
        assert abs(total_pct - 100) <= 0.01 * len(data["breakdown"])

    def test_uncategorized_and_order(self, make_issue):
        cats = _categories("Equipment")
        make_issue(category_id=cats["Equipment"])
        make_issue(category_id=cats["Equipment"])
        make_issue()

        report = reports.generate_report("category-breakdown")
        assert report["data"]["breakdown"] == [
            {"category": "Equipment", "count": 2, "percentage": 66.67},
            {"category": "Uncategorized", "count": 1, "percentage": 33.33},
        ]
        assert "significant concentration" in report["summary"]

    def test_filters_on_created_at(self, make_issue):
        old = make_issue()
        old.created_at = T0 - timedelta(days=10)
        db.session.commit()
        make_issue()

        data = reports.generate_report("category-breakdown", from_date="2024-04-25")["data"]
        assert data["total"] == 1


class TestEscalationAnalysis:

    def test_rate_against_all_issues(self, make_issue):
        issues = [make_issue(f"Issue {i}") for i in range(4)]
        lifecycle.escalate_issue(issues[0].id, 2, "a", "u1")
        lifecycle.escalate_issue(issues[0].id, 3, "b", "u1")
        lifecycle.escalate_issue(issues[1].id, 2, "c", "u1")

        report = reports.generate_report("escalation-analysis")
        data = report["data"]
        assert data["total_escalations"] == 3
        assert data["total_issues"] == 4
        assert data["escalation_rate"] == 75.0
        assert round(data["total_escalations"] / data["total_issues"] * 100, 2) == data["escalation_rate"]
        assert data["by_level_transition"][0] == {"from_level": 1, "to_level": 2, "count": 2}
        assert "High escalation rate" in report["summary"]

    def test_date_filter_does_not_shrink_denominator(self, make_issue):
        issues = [make_issue(f"Issue {i}") for i in range(3)]
        _, esc = lifecycle.escalate_issue(issues[0].id, 2, "a", "u1")
        esc.escalated_at = T0 - timedelta(days=30)
        db.session.commit()
        lifecycle.escalate_issue(issues[1].id, 2, "b", "u1")

        data = reports.generate_report("escalation-analysis", from_date="2024-05-01")["data"]
        assert data["total_escalations"] == 1
        assert data["total_issues"] == 3
        assert data["escalation_rate"] == 33.33

    def test_no_issues(self):
        data = reports.generate_report("escalation-analysis")["data"]
        assert data["escalation_rate"] == 0
