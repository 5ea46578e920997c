"""
Issue Lifecycle Tests: service-level coverage for:
  - create defaults, validation and the stored suggestion
  - escalate: level ordering, history, RESOLVED terminal
  - resolve: metrics, double resolve
  - update: descriptive fields, level/status ownership
  - delete: cascade completeness
  - bulk create/update/delete and export
  - transactional rollback when the second write fails
  - concurrent escalations against a file-backed database
"""

import threading

import pytest
from sqlalchemy import func, select

from gemba import create_app
from gemba.config import TestingConfig
from gemba.core.exceptions import ConflictError, NotFoundError, ValidationError
from gemba.models import db
from gemba.models.issue import AISuggestion, Issue, IssueEscalation, IssueResolution
from gemba.services import issue_lifecycle as svc


def _count(model, **criteria):
    stmt = select(func.count()).select_from(model)
    for key, value in criteria.items():
        stmt = stmt.where(getattr(model, key) == value)
    return db.session.execute(stmt).scalar()


# ═══════════════════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════════════════


class TestCreate:

    def test_defaults(self):
        issue, suggestion = svc.create_issue({"title": "  Conveyor stopped  "}, "u1")
        assert issue.title == "Conveyor stopped"
        assert issue.status == "OPEN"
        assert issue.level == 1
        assert issue.priority == "MEDIUM"
        assert issue.source == "manual"
        assert issue.created_by == "u1"
        assert suggestion.suggested_level == 1
        assert suggestion.confidence == 0.75
        assert suggestion.issue_id == issue.id

    def test_issue_numbers_increase(self, make_issue):
        first = make_issue("One")
        second = make_issue("Two")
        assert second.issue_number == first.issue_number + 1

    def test_suggestion_uses_category_name(self):
        from gemba.models.reference import IssueCategory
        cat = IssueCategory(name="Safety")
        db.session.add(cat)
        db.session.commit()
        _, suggestion = svc.create_issue({"title": "Odd noise", "category_id": cat.id}, "u1")
        assert suggestion.reason.startswith("Immediately secure the area")

    def test_suggested_level_follows_initial_level(self):
        issue, suggestion = svc.create_issue({"title": "Press down", "level": 3}, "u1")
        assert issue.level == 3
        assert suggestion.suggested_level == 3

    @pytest.mark.parametrize("payload", [
        {},
        {"title": ""},
        {"title": "   "},
        {"title": 12},
    ])
    def test_title_required(self, payload):
        with pytest.raises(ValidationError, match="Title is required"):
            svc.create_issue(payload, "u1")
        assert _count(Issue) == 0

    @pytest.mark.parametrize("payload", [
        {"title": "x", "priority": "URGENT"},
        {"title": "x", "level": 5},
        {"title": "x", "level": 0},
        {"title": "x", "level": "two"},
        {"title": "x", "source": "email"},
        {"title": "x", "category_id": "missing"},
        {"title": "x", "area_id": "missing"},
    ])
    def test_invalid_fields(self, payload):
        with pytest.raises(ValidationError):
            svc.create_issue(payload, "u1")
        assert _count(Issue) == 0


# ═══════════════════════════════════════════════════════════════════════════
# Escalate
# ═══════════════════════════════════════════════════════════════════════════


class TestEscalate:

    def test_escalate_records_history(self, make_issue):
        issue = make_issue()
        issue, esc = svc.escalate_issue(issue.id, 2, "Needs team lead", "u2")
        assert issue.level == 2
        assert issue.status == "ESCALATED"
        assert (esc.from_level, esc.to_level) == (1, 2)
        assert esc.escalated_by == "u2"

    def test_re_escalate_uses_current_level(self, make_issue):
        issue = make_issue()
        svc.escalate_issue(issue.id, 2, "first", "u2")
        _, esc = svc.escalate_issue(issue.id, 4, "second", "u3")
        assert (esc.from_level, esc.to_level) == (2, 4)
        assert _count(IssueEscalation, issue_id=issue.id) == 2

    @pytest.mark.parametrize("target", [1, 0])
    def test_target_must_be_higher(self, make_issue, target):
        issue = make_issue()
        with pytest.raises(ValidationError):
            svc.escalate_issue(issue.id, target, "reason", "u2")
        assert _count(IssueEscalation) == 0

    def test_same_level_rejected(self, make_issue):
        issue = make_issue(level=2)
        with pytest.raises(ValidationError, match="higher than current level"):
            svc.escalate_issue(issue.id, 2, "reason", "u2")

    def test_reason_required(self, make_issue):
        issue = make_issue()
        with pytest.raises(ValidationError, match="Target level and reason are required"):
            svc.escalate_issue(issue.id, 2, "  ", "u2")

    def test_level_above_four_rejected(self, make_issue):
        issue = make_issue()
        with pytest.raises(ValidationError):
            svc.escalate_issue(issue.id, 5, "reason", "u2")

    def test_unknown_issue(self):
        with pytest.raises(NotFoundError):
            svc.escalate_issue("nope", 2, "reason", "u2")

    def test_resolved_is_terminal(self, make_issue):
        issue = make_issue()
        svc.resolve_issue(issue.id, {"resolution": "Fixed"}, "u2")
        with pytest.raises(ConflictError):
            svc.escalate_issue(issue.id, 3, "reopen?", "u2")
        assert _count(IssueEscalation) == 0


# ═══════════════════════════════════════════════════════════════════════════
# Resolve
# ═══════════════════════════════════════════════════════════════════════════


class TestResolve:

    def test_resolve_keeps_level(self, make_issue):
        issue = make_issue()
        svc.escalate_issue(issue.id, 3, "manager", "u2")
        issue, res = svc.resolve_issue(issue.id, {
            "resolution": "Replaced bearing",
            "downtime_prevented": 120,
            "cost_savings": "450.5",
        }, "u3")
        assert issue.status == "RESOLVED"
        assert issue.level == 3
        assert res.downtime_prevented == 120.0
        assert res.cost_savings == 450.5
        assert res.defects_reduced is None

    def test_resolution_required(self, make_issue):
        issue = make_issue()
        with pytest.raises(ValidationError, match="Resolution is required"):
            svc.resolve_issue(issue.id, {"resolution": ""}, "u2")

    def test_metric_must_be_numeric(self, make_issue):
        issue = make_issue()
        with pytest.raises(ValidationError):
            svc.resolve_issue(issue.id, {"resolution": "ok", "defects_reduced": "many"}, "u2")
        assert db.session.get(Issue, issue.id).status == "OPEN"

    def test_double_resolve_conflicts(self, make_issue):
        issue = make_issue()
        svc.resolve_issue(issue.id, {"resolution": "Fixed"}, "u2")
        with pytest.raises(ConflictError):
            svc.resolve_issue(issue.id, {"resolution": "Fixed again"}, "u2")
        assert _count(IssueResolution, issue_id=issue.id) == 1

    def test_unknown_issue(self):
        with pytest.raises(NotFoundError):
            svc.resolve_issue("nope", {"resolution": "x"}, "u2")


# ═══════════════════════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════════════════════


class TestUpdate:

    def test_update_descriptive_fields(self, make_issue, area):
        issue = make_issue()
        issue = svc.update_issue(issue.id, {"title": "Belt torn", "priority": "high", "area_id": area.id})
        assert issue.title == "Belt torn"
        assert issue.priority == "HIGH"
        assert issue.area_id == area.id

    def test_empty_payload(self, make_issue):
        issue = make_issue()
        with pytest.raises(ValidationError, match="No fields to update"):
            svc.update_issue(issue.id, {})

    def test_status_not_writable(self, make_issue):
        issue = make_issue()
        with pytest.raises(ValidationError):
            svc.update_issue(issue.id, {"status": "RESOLVED"})

    def test_level_cannot_decrease(self, make_issue):
        issue = make_issue(level=3)
        with pytest.raises(ValidationError):
            svc.update_issue(issue.id, {"level": 2})

    def test_level_increase_is_recorded(self, make_issue):
        issue = make_issue()
        issue = svc.update_issue(issue.id, {"level": 2, "reason": "Shift lead asked"}, "u2")
        assert issue.level == 2
        assert issue.status == "ESCALATED"
        history = svc.get_history(issue.id)
        assert [(e["from_level"], e["to_level"], e["reason"]) for e in history["escalations"]] == [
            (1, 2, "Shift lead asked"),
        ]

    def test_resolved_issue_is_read_only(self, make_issue):
        issue = make_issue()
        svc.resolve_issue(issue.id, {"resolution": "Fixed"}, "u2")
        with pytest.raises(ConflictError):
            svc.update_issue(issue.id, {"title": "New"})


# ═══════════════════════════════════════════════════════════════════════════
# Delete / history / atomicity
# ═══════════════════════════════════════════════════════════════════════════


class TestDelete:

    def test_delete_cascades_everything(self, make_issue):
        issue = make_issue("Machine breakdown")
        keep = make_issue("Other")
        svc.escalate_issue(issue.id, 2, "a", "u2")
        svc.escalate_issue(issue.id, 3, "b", "u2")
        svc.resolve_issue(issue.id, {"resolution": "done"}, "u3")
        issue_id = issue.id

        svc.delete_issue(issue_id)

        assert db.session.get(Issue, issue_id) is None
        assert _count(IssueEscalation, issue_id=issue_id) == 0
        assert _count(IssueResolution, issue_id=issue_id) == 0
        assert _count(AISuggestion, issue_id=issue_id) == 0
        assert _count(AISuggestion, issue_id=keep.id) == 1

    def test_delete_unknown(self):
        with pytest.raises(NotFoundError):
            svc.delete_issue("nope")


class TestHistory:

    def test_history_order_and_user_names(self, make_issue, lead_user):
        issue = make_issue()
        svc.escalate_issue(issue.id, 2, "first", lead_user.id)
        svc.escalate_issue(issue.id, 3, "second", "someone-unknown")
        history = svc.get_history(issue.id)

        assert [e["to_level"] for e in history["escalations"]] == [2, 3]
        assert history["escalations"][0]["escalated_by_username"] == "jdoe"
        assert history["escalations"][0]["escalated_by_name"] == "J. Doe"
        assert history["escalations"][1]["escalated_by_username"] is None
        assert history["resolution"] is None

    def test_history_unknown_issue(self):
        with pytest.raises(NotFoundError):
            svc.get_history("nope")


class TestAtomicity:

    def test_failed_history_insert_rolls_back_level_change(self, make_issue, monkeypatch):
        issue = make_issue()

        def _boom(*args, **kwargs):
            raise RuntimeError("insert failed")

        monkeypatch.setattr(svc, "IssueEscalation", _boom)
        with pytest.raises(RuntimeError):
            svc.escalate_issue(issue.id, 3, "reason", "u2")

        fresh = db.session.get(Issue, issue.id)
        assert fresh.level == 1
        assert fresh.status == "OPEN"


class TestTransitions:

    def test_available_transitions(self, make_issue):
        issue = make_issue()
        assert svc.get_available_transitions(issue) == ["escalate", "resolve"]
        svc.resolve_issue(issue.id, {"resolution": "x"}, "u2")
        assert svc.get_available_transitions(db.session.get(Issue, issue.id)) == []

    def test_unknown_action(self, make_issue):
        result = svc.validate_transition(make_issue(), "reopen")
        assert result["valid"] is False


# ═══════════════════════════════════════════════════════════════════════════
# Bulk operations / export
# ═══════════════════════════════════════════════════════════════════════════


class TestBulkCreate:

    def test_creates_every_item_with_suggestion(self):
        created = svc.bulk_create_issues(
            [{"title": "Leak at press 4", "priority": "HIGH"}, {"title": "Label printer jams"}],
            "admin-1",
        )
        assert [issue.title for issue, _ in created] == ["Leak at press 4", "Label printer jams"]
        assert created[1][0].issue_number == created[0][0].issue_number + 1
        assert _count(Issue, created_by="admin-1") == 2
        assert _count(AISuggestion) == 2

    def test_one_invalid_item_rejects_batch(self):
        with pytest.raises(ValidationError, match=r"items\[1\]: Title is required"):
            svc.bulk_create_issues([{"title": "Fine"}, {"description": "no title"}], "admin-1")
        assert _count(Issue) == 0

    @pytest.mark.parametrize("items", [None, [], {"title": "x"}])
    def test_items_required(self, items):
        with pytest.raises(ValidationError, match="items array is required"):
            svc.bulk_create_issues(items, "admin-1")

    def test_non_object_item(self):
        with pytest.raises(ValidationError, match="Each item must be an object"):
            svc.bulk_create_issues(["Conveyor stopped"], "admin-1")


class TestBulkUpdate:

    def test_level_raise_is_an_escalation(self, make_issue):
        first = make_issue("Motor overheating")
        second = make_issue("Paint defects")

        result = svc.bulk_update_issues([
            {"id": first.id, "level": 3, "reason": "Line down"},
            {"id": second.id, "priority": "high"},
            {"id": "missing", "title": "Ghost"},
        ], "admin-1")

        assert result == {"updated": 2, "not_found": ["missing"]}
        first = db.session.get(Issue, first.id)
        assert (first.level, first.status) == (3, "ESCALATED")
        assert db.session.get(Issue, second.id).priority == "HIGH"
        trail = svc.get_history(first.id)["escalations"]
        assert [(e["from_level"], e["to_level"], e["reason"]) for e in trail] == [(1, 3, "Line down")]

    def test_status_rejects_batch(self, make_issue):
        first = make_issue("Old title")
        second = make_issue()
        with pytest.raises(ValidationError, match=r"items\[1\]: status cannot be set directly"):
            svc.bulk_update_issues([
                {"id": first.id, "title": "New title"},
                {"id": second.id, "status": "RESOLVED"},
            ])
        assert db.session.get(Issue, first.id).title == "Old title"

    def test_resolved_item_rolls_back_batch(self, make_issue):
        open_issue = make_issue("Old title")
        closed = make_issue()
        svc.resolve_issue(closed.id, {"resolution": "Fixed"}, "u2")

        with pytest.raises(ConflictError, match="Resolved issues cannot be modified"):
            svc.bulk_update_issues([
                {"id": open_issue.id, "title": "New title"},
                {"id": closed.id, "title": "Reopened?"},
            ])
        assert db.session.get(Issue, open_issue.id).title == "Old title"

    def test_items_without_fields_are_skipped(self, make_issue):
        issue = make_issue()
        assert svc.bulk_update_issues([{"id": issue.id}]) == {"updated": 0, "not_found": []}

    def test_id_required(self):
        with pytest.raises(ValidationError, match="Each item must have an id"):
            svc.bulk_update_issues([{"title": "x"}])


class TestBulkDelete:

    def test_deletes_with_children(self, make_issue):
        issue = make_issue("Machine breakdown")
        other = make_issue("Jam")
        keep = make_issue("Keep me")
        svc.escalate_issue(issue.id, 2, "a", "u2")
        svc.resolve_issue(issue.id, {"resolution": "done"}, "u3")
        ids = [issue.id, other.id]

        assert svc.bulk_delete_issues([*ids, "missing"]) == {"deleted": 2}

        for issue_id in ids:
            assert db.session.get(Issue, issue_id) is None
            assert _count(AISuggestion, issue_id=issue_id) == 0
        assert _count(IssueEscalation) == 0
        assert _count(IssueResolution) == 0
        assert db.session.get(Issue, keep.id) is not None

    def test_ids_required(self):
        with pytest.raises(ValidationError, match="ids array is required"):
            svc.bulk_delete_issues([])


class TestExport:

    def test_filters_and_order(self, make_issue):
        first = make_issue("Leak", priority="HIGH")
        make_issue("Scratch", priority="LOW")
        second = make_issue("Fire alarm", priority="HIGH")

        rows = svc.export_issues({"priority": "high"})
        assert [row["id"] for row in rows] == [second.id, first.id]
        assert {"issue_number", "status", "level", "category_name"} <= set(rows[0])

    def test_unpaginated(self, make_issue):
        for n in range(svc.MAX_PER_PAGE + 5):
            make_issue(f"Issue {n}")
        assert len(svc.export_issues()) == svc.MAX_PER_PAGE + 5

    def test_invalid_filter(self):
        with pytest.raises(ValidationError):
            svc.export_issues({"status": "CLOSED"})


# ═══════════════════════════════════════════════════════════════════════════
# Guarded writes and concurrency
# ═══════════════════════════════════════════════════════════════════════════


class TestGuardedWrite:

    def test_write_skipped_when_level_moved(self, make_issue):
        issue = make_issue()
        with pytest.raises(svc._StaleIssue):
            svc._guarded_write(issue, Issue.level == 2, level=3)
        db.session.rollback()
        assert db.session.get(Issue, issue.id).level == 1

    def test_resolved_status_is_never_overwritten(self, make_issue):
        issue = make_issue()
        svc.resolve_issue(issue.id, {"resolution": "Fixed"}, "u2")
        issue = db.session.get(Issue, issue.id)
        with pytest.raises(svc._StaleIssue):
            svc._guarded_write(issue, Issue.status == "OPEN", status="ESCALATED", level=3)
        db.session.rollback()
        assert db.session.get(Issue, issue.id).status == "RESOLVED"

    def test_lost_race_is_retried_on_fresh_read(self, make_issue, monkeypatch):
        issue = make_issue()
        real_write = svc._guarded_write
        calls = []

        def _lose_first(target, *guard, **values):
            calls.append(values)
            if len(calls) == 1:
                raise svc._StaleIssue(target.id)
            real_write(target, *guard, **values)

        monkeypatch.setattr(svc, "_guarded_write", _lose_first)
        issue, escalation = svc.escalate_issue(issue.id, 2, "reason", "u2")

        assert len(calls) == 2
        assert issue.level == 2
        assert (escalation.from_level, escalation.to_level) == (1, 2)
        assert _count(IssueEscalation, issue_id=issue.id) == 1

    def test_gives_up_after_repeated_conflicts(self, make_issue, monkeypatch):
        issue = make_issue()

        def _always_stale(target, *guard, **values):
            raise svc._StaleIssue(target.id)

        monkeypatch.setattr(svc, "_guarded_write", _always_stale)
        with pytest.raises(ConflictError, match="changed by another request"):
            svc.escalate_issue(issue.id, 2, "reason", "u2")
        assert _count(IssueEscalation) == 0
        assert db.session.get(Issue, issue.id).level == 1


@pytest.fixture()
def file_app(tmp_path, monkeypatch):
    """App on a file-backed SQLite database so each thread gets its own connection."""
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path / 'race.db'}")
    app = create_app("testing")
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _race(app, monkeypatch, calls):
    """Run ``calls`` ({key: fn}) in threads that all read the issue before any writes."""
    barrier = threading.Barrier(len(calls), timeout=10)
    local = threading.local()
    real_lock = svc._lock_issue

    def _lock_then_wait(issue_id):
        issue = real_lock(issue_id)
        if not getattr(local, "waited", False):
            local.waited = True
            barrier.wait()
        return issue

    monkeypatch.setattr(svc, "_lock_issue", _lock_then_wait)

    outcomes = {}

    def _run(key, fn):
        with app.app_context():
            try:
                fn()
                outcomes[key] = "ok"
            except ValidationError:
                outcomes[key] = "rejected"
            except ConflictError:
                outcomes[key] = "conflict"
            except Exception as exc:  # noqa: BLE001
                outcomes[key] = repr(exc)

    threads = [threading.Thread(target=_run, args=item) for item in calls.items()]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


class TestConcurrentEscalation:

    def _new_issue(self, app):
        with app.app_context():
            issue, _ = svc.create_issue({"title": "Hydraulic press leaking"}, "u1")
            return issue.id

    def _state(self, app, issue_id):
        with app.app_context():
            issue = db.session.get(Issue, issue_id)
            trail = db.session.execute(
                select(IssueEscalation.from_level, IssueEscalation.to_level)
                .where(IssueEscalation.issue_id == issue_id)
                .order_by(IssueEscalation.from_level)
            ).all()
            resolutions = _count(IssueResolution, issue_id=issue_id)
            return issue.level, issue.status, [tuple(row) for row in trail], resolutions

    def test_parallel_escalations_keep_trail_consistent(self, file_app, monkeypatch):
        issue_id = self._new_issue(file_app)

        outcomes = _race(file_app, monkeypatch, {
            target: (lambda target=target: svc.escalate_issue(issue_id, target, f"to L{target}", "u2"))
            for target in (2, 3)
        })

        level, status, trail, _ = self._state(file_app, issue_id)
        assert outcomes[3] == "ok"
        assert outcomes[2] in ("ok", "rejected")
        assert (level, status) == (3, "ESCALATED")
        assert trail[0][0] == 1
        assert trail[-1][1] == 3
        for (_, prev_to), (next_from, _) in zip(trail, trail[1:]):
            assert next_from == prev_to
        assert len({from_level for from_level, _ in trail}) == len(trail)

    def test_escalate_racing_resolve_never_reopens(self, file_app, monkeypatch):
        issue_id = self._new_issue(file_app)

        outcomes = _race(file_app, monkeypatch, {
            "escalate": lambda: svc.escalate_issue(issue_id, 3, "Needs manager", "u2"),
            "resolve": lambda: svc.resolve_issue(issue_id, {"resolution": "Tightened fitting"}, "u3"),
        })

        level, status, trail, resolutions = self._state(file_app, issue_id)
        assert outcomes["resolve"] == "ok"
        assert outcomes["escalate"] in ("ok", "conflict")
        assert status == "RESOLVED"
        assert resolutions == 1
        if outcomes["escalate"] == "ok":
            assert (level, trail) == (3, [(1, 3)])
        else:
            assert (level, trail) == (1, [])
