"""
Gemba Issue Tracker
Issue Lifecycle Service.

Owns every write to an issue and its history:
  - create (with the rule-based suggestion stored alongside)
  - escalate (level goes up, append-only escalation record)
  - resolve (terminal, one resolution record)
  - update (descriptive fields only)
  - delete (children first, then the issue)
  - bulk create / update / delete (one transaction per batch)

State machine:
    OPEN ──escalate──▶ ESCALATED ──escalate──▶ ESCALATED
      │                    │
      └──────resolve───────┴──────▶ RESOLVED  (terminal)

Every mutation runs inside gemba.utils.helpers.atomic(): either all of its
statements are committed or none are. The issue row is read with
SELECT ... FOR UPDATE and written with UPDATE ... WHERE level/status still
match what was read. A write that matches no row lost a race; the whole
transaction is rolled back and retried against the committed state.

Usage:
    from gemba.services.issue_lifecycle import escalate_issue

    issue, escalation = escalate_issue(issue_id, 3, "Needs maintenance team", user_id)
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from gemba.ai.suggestion_classifier import SUGGESTION_CONFIDENCE, classify, classify_rule
from gemba.core.exceptions import ConflictError, NotFoundError, ValidationError
from gemba.models import db
from gemba.models.issue import (
    AISuggestion,
    ISSUE_PRIORITIES,
    ISSUE_SOURCES,
    ISSUE_STATUSES,
    Issue,
    IssueEscalation,
    IssueResolution,
    MAX_LEVEL,
    MIN_LEVEL,
    STATUS_ESCALATED,
    STATUS_OPEN,
    STATUS_RESOLVED,
    next_issue_number,
)
from gemba.models.reference import Area, IssueCategory
from gemba.utils.helpers import atomic, date_bounds

logger = logging.getLogger(__name__)


# Issue transition rules
ISSUE_TRANSITIONS = {
    "escalate": {"from": [STATUS_OPEN, STATUS_ESCALATED], "to": STATUS_ESCALATED},
    "resolve": {"from": [STATUS_OPEN, STATUS_ESCALATED], "to": STATUS_RESOLVED},
}

SORT_FIELDS = {
    "created_at": Issue.created_at,
    "updated_at": Issue.updated_at,
    "priority": Issue.priority,
    "level": Issue.level,
    "status": Issue.status,
    "title": Issue.title,
}

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100

_NUMBER_ALLOCATION_ATTEMPTS = 3
_TRANSITION_ATTEMPTS = 3
_METRIC_FIELDS = ("downtime_prevented", "defects_reduced", "cost_savings")


def validate_transition(issue: Issue, action: str) -> dict:
    """Validate whether an action is valid for the issue's current status."""
    rule = ISSUE_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": issue.status, "to": None,
                "reason": f"Unknown action: {action}"}

    if issue.status not in rule["from"]:
        return {"valid": False, "from": issue.status, "to": rule["to"],
                "reason": f"Cannot {action} an issue with status {issue.status}"}

    return {"valid": True, "from": issue.status, "to": rule["to"], "reason": None}


def get_available_transitions(issue: Issue) -> list[str]:
    """Actions allowed from the issue's current status."""
    return [action for action, rule in ISSUE_TRANSITIONS.items() if issue.status in rule["from"]]


def _ensure_transition(issue: Issue, action: str) -> str:
    result = validate_transition(issue, action)
    if not result["valid"]:
        raise ConflictError("Issue", result["reason"])
    return result["to"]


# ═════════════════════════════════════════════════════════════════════════════
# Input validation
# ═════════════════════════════════════════════════════════════════════════════


def _require_title(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Title is required", details={"title": "required"})
    title = value.strip()
    if len(title) > 300:
        raise ValidationError("Title must be at most 300 characters", details={"title": "too long"})
    return title


def _optional_text(value, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid type"})
    return value


def _coerce_level(value, field: str = "level") -> int:
    """Accept ints (or integer strings) in 1..4."""
    if isinstance(value, bool):
        value = None
    try:
        level = int(value)
    except (TypeError, ValueError):
        level = None
    if level is None or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"})
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise ValidationError(
            f"{field} must be between {MIN_LEVEL} and {MAX_LEVEL}",
            details={field: "out of range"},
        )
    return level


def _coerce_priority(value) -> str:
    priority = value.upper() if isinstance(value, str) else value
    if priority not in ISSUE_PRIORITIES:
        raise ValidationError(
            f"priority must be one of: {', '.join(ISSUE_PRIORITIES)}",
            details={"priority": "invalid"},
        )
    return priority


def _coerce_source(value) -> str:
    if value not in ISSUE_SOURCES:
        raise ValidationError(
            f"source must be one of: {', '.join(ISSUE_SOURCES)}",
            details={"source": "invalid"},
        )
    return value


def _optional_metric(data: dict, field: str) -> float | None:
    value = data.get(field)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: "invalid"})
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "invalid"}) from None


def _resolve_reference(model, ref_id, field: str):
    """Return the referenced row (or None for a cleared reference)."""
    if ref_id in (None, ""):
        return None
    row = db.session.get(model, str(ref_id))
    if row is None:
        raise ValidationError(f"{field} does not reference an existing record", details={field: "unknown"})
    return row


def _get_issue_or_404(issue_id: str) -> Issue:
    issue = db.session.get(Issue, issue_id)
    if issue is None:
        raise NotFoundError(resource="Issue", resource_id=issue_id)
    return issue


def _lock_issue(issue_id: str) -> Issue:
    """Load the issue row with a write lock for the rest of the transaction."""
    issue = db.session.execute(
        select(Issue)
        .where(Issue.id == issue_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if issue is None:
        raise NotFoundError(resource="Issue", resource_id=issue_id)
    return issue


class _StaleIssue(Exception):
    """The issue row changed between the locked read and the write."""


def _guarded_write(issue: Issue, *guard, **values) -> None:
    """UPDATE the issue only while the row still matches ``guard``.

    SQLite ignores FOR UPDATE, so the conditional WHERE is what keeps two
    writers from both acting on the same read.
    """
    result = db.session.execute(
        update(Issue).where(Issue.id == issue.id, *guard).values(**values)
    )
    if result.rowcount != 1:
        raise _StaleIssue(issue.id)


def _retrying(work):
    """Run ``work(session)`` in one transaction, re-reading after a lost race."""
    for attempt in range(1, _TRANSITION_ATTEMPTS + 1):
        try:
            with atomic() as session:
                return work(session)
        except _StaleIssue as exc:
            if attempt == _TRANSITION_ATTEMPTS:
                raise ConflictError("Issue", "Issue was changed by another request, please retry") from exc
            logger.warning("Issue %s changed concurrently, retrying (attempt %d)", exc, attempt)


def _require_list(value, field: str) -> list:
    if not isinstance(value, list) or not value:
        raise ValidationError(
            f"{field} array is required and must not be empty",
            details={field: "required"},
        )
    return value


# ═════════════════════════════════════════════════════════════════════════════
# Create
# ═════════════════════════════════════════════════════════════════════════════


def _prepare_issue(data: dict) -> dict:
    """Validate create input; returns the column values plus the suggestion text."""
    title = _require_title(data.get("title"))
    description = _optional_text(data.get("description"), "description")
    level = _coerce_level(MIN_LEVEL if data.get("level") is None else data["level"])
    category = _resolve_reference(IssueCategory, data.get("category_id"), "category_id")
    area = _resolve_reference(Area, data.get("area_id"), "area_id")
    category_name = category.name if category else None

    return {
        "title": title,
        "description": description,
        "priority": _coerce_priority(data.get("priority") or "MEDIUM"),
        "level": level,
        "source": _coerce_source(data.get("source") or "manual"),
        "category_id": category.id if category else None,
        "area_id": area.id if area else None,
        "suggestion": classify(title, description or "", category_name),
        "rule": classify_rule(title, description or "", category_name),
    }


def _insert_issue(session, fields: dict, user_id: str | None) -> tuple[Issue, AISuggestion]:
    issue = Issue(
        issue_number=next_issue_number(),
        title=fields["title"],
        description=fields["description"],
        status=STATUS_OPEN,
        level=fields["level"],
        priority=fields["priority"],
        source=fields["source"],
        category_id=fields["category_id"],
        area_id=fields["area_id"],
        created_by=user_id,
    )
    session.add(issue)
    session.flush()

    suggestion = AISuggestion(
        issue_id=issue.id,
        suggested_level=fields["level"],
        reason=fields["suggestion"],
        confidence=SUGGESTION_CONFIDENCE,
    )
    session.add(suggestion)
    return issue, suggestion


def _create_all(prepared: list[dict], user_id: str | None) -> list[tuple[Issue, AISuggestion]]:
    """Insert every prepared issue in one transaction, retrying number collisions."""
    for attempt in range(1, _NUMBER_ALLOCATION_ATTEMPTS + 1):
        try:
            with atomic() as session:
                return [_insert_issue(session, fields, user_id) for fields in prepared]
        except IntegrityError:
            if attempt == _NUMBER_ALLOCATION_ATTEMPTS:
                raise
            logger.warning("Issue number collision, retrying (attempt %d)", attempt)


def create_issue(data: dict, user_id: str | None) -> tuple[Issue, AISuggestion]:
    """Create an OPEN issue and store its remediation suggestion.

    Args:
        data: title (required), description, category_id, area_id,
            priority (default MEDIUM), level (default 1), source (default manual).
        user_id: Reporter, stored as created_by.

    Returns:
        (issue, suggestion), both committed.

    Raises:
        ValidationError: Missing title or invalid enum/level/reference.
    """
    fields = _prepare_issue(data or {})
    issue, suggestion = _create_all([fields], user_id)[0]

    logger.info(
        "Issue created: #%s L%s rule=%s",
        issue.issue_number, issue.level, fields["rule"],
        extra={"issue_id": issue.id, "user_id": user_id},
    )
    return issue, suggestion


def bulk_create_issues(items, user_id: str | None) -> list[tuple[Issue, AISuggestion]]:
    """Create several issues in a single transaction; one bad item rejects them all."""
    prepared = []
    for index, item in enumerate(_require_list(items, "items")):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", details={f"items[{index}]": "invalid"})
        try:
            prepared.append(_prepare_issue(item))
        except ValidationError as exc:
            raise ValidationError(f"items[{index}]: {exc}", details=exc.details) from exc

    created = _create_all(prepared, user_id)
    logger.info("Bulk create: %d issue(s)", len(created), extra={"user_id": user_id})
    return created


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════


def escalate_issue(issue_id: str, target_level, reason, user_id: str | None) -> tuple[Issue, IssueEscalation]:
    """Raise an issue to a higher level and append an escalation record.

    Concurrent escalations of one issue are serialized: a caller that lost
    the race re-reads the new level and is validated against it.

    Raises:
        ValidationError: Missing target_level/reason, level outside 1..4,
            or target_level not above the current level.
        NotFoundError: Unknown issue.
        ConflictError: Issue is RESOLVED, or kept changing under us.
    """
    if target_level in (None, "", 0) or not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Target level and reason are required")
    target = _coerce_level(target_level, "target_level")

    def _escalate(session):
        issue = _lock_issue(issue_id)
        new_status = _ensure_transition(issue, "escalate")
        if target <= issue.level:
            raise ValidationError(
                "Target level must be higher than current level",
                details={"target_level": f"must be greater than {issue.level}"},
            )

        from_level = issue.level
        _guarded_write(
            issue, Issue.level == from_level, Issue.status == issue.status,
            level=target, status=new_status,
        )
        escalation = IssueEscalation(
            issue_id=issue.id,
            from_level=from_level,
            to_level=target,
            reason=reason.strip(),
            escalated_by=user_id,
        )
        session.add(escalation)
        return issue, escalation

    issue, escalation = _retrying(_escalate)

    logger.info(
        "Issue escalated: #%s L%s -> L%s",
        issue.issue_number, escalation.from_level, escalation.to_level,
        extra={"issue_id": issue.id, "user_id": user_id},
    )
    return issue, escalation


def resolve_issue(issue_id: str, data: dict, user_id: str | None) -> tuple[Issue, IssueResolution]:
    """Close an issue with a resolution text and optional impact metrics.

    Level is left unchanged. A RESOLVED issue cannot be resolved again.

    Raises:
        ValidationError: Missing resolution or non-numeric metric.
        NotFoundError: Unknown issue.
        ConflictError: Issue is already RESOLVED.
    """
    data = data or {}
    text = data.get("resolution")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Resolution is required", details={"resolution": "required"})
    metrics = {field: _optional_metric(data, field) for field in _METRIC_FIELDS}

    def _resolve(session):
        issue = _lock_issue(issue_id)
        new_status = _ensure_transition(issue, "resolve")
        _guarded_write(issue, Issue.status != STATUS_RESOLVED, status=new_status)
        resolution = IssueResolution(
            issue_id=issue.id,
            resolution=text.strip(),
            resolved_by=user_id,
            **metrics,
        )
        session.add(resolution)
        return issue, resolution

    try:
        issue, resolution = _retrying(_resolve)
    except IntegrityError as exc:
        # Unique issue_id: a concurrent resolve committed first
        raise ConflictError("Issue", "Issue is already resolved") from exc

    logger.info(
        "Issue resolved: #%s at L%s",
        issue.issue_number, issue.level,
        extra={"issue_id": issue.id, "user_id": user_id},
    )
    return issue, resolution


# ═════════════════════════════════════════════════════════════════════════════
# Update / delete
# ═════════════════════════════════════════════════════════════════════════════

_UPDATABLE = ("title", "description", "category_id", "area_id", "priority")


def _has_update_fields(data: dict) -> bool:
    return any(key in data for key in (*_UPDATABLE, "status", "level"))


def _prepare_update(data: dict) -> tuple[dict, int | None, str | None]:
    """Validate update input; returns (column changes, new level, escalation reason)."""
    if not _has_update_fields(data):
        raise ValidationError("No fields to update")
    if "status" in data:
        raise ValidationError(
            "status cannot be set directly; use escalate or resolve",
            details={"status": "read-only"},
        )

    changes = {}
    if "title" in data:
        changes["title"] = _require_title(data["title"])
    if "description" in data:
        changes["description"] = _optional_text(data["description"], "description")
    if "priority" in data:
        changes["priority"] = _coerce_priority(data["priority"])
    if "category_id" in data:
        category = _resolve_reference(IssueCategory, data["category_id"], "category_id")
        changes["category_id"] = category.id if category else None
    if "area_id" in data:
        area = _resolve_reference(Area, data["area_id"], "area_id")
        changes["area_id"] = area.id if area else None
    new_level = _coerce_level(data["level"]) if "level" in data else None
    reason = _optional_text(data.get("reason"), "reason")
    return changes, new_level, reason


def _apply_update(session, issue_id: str, changes: dict, new_level, reason, user_id) -> Issue:
    issue = _lock_issue(issue_id)
    if issue.is_terminal:
        raise ConflictError("Issue", "Resolved issues cannot be modified")

    from_level = issue.level
    values = dict(changes)
    raised = new_level is not None and new_level != from_level
    if raised:
        if new_level < from_level:
            raise ValidationError(
                "Level can only be increased",
                details={"level": f"must be greater than {from_level}"},
            )
        values["status"] = _ensure_transition(issue, "escalate")
        values["level"] = new_level

    if values:
        _guarded_write(issue, Issue.level == from_level, Issue.status == issue.status, **values)
    if raised:
        session.add(IssueEscalation(
            issue_id=issue.id,
            from_level=from_level,
            to_level=new_level,
            reason=reason or "Level raised on issue update",
            escalated_by=user_id,
        ))
    return issue


def update_issue(issue_id: str, data: dict, user_id: str | None = None) -> Issue:
    """Partial update of descriptive fields.

    status is owned by escalate/resolve and cannot be written here. A level
    change is accepted only upwards and is recorded as an escalation, with
    ``reason`` (or a default note) as the escalation reason.

    Raises:
        ValidationError: Empty payload, status given, level lowered, bad values.
        NotFoundError: Unknown issue.
        ConflictError: Issue is RESOLVED.
    """
    changes, new_level, reason = _prepare_update(data or {})
    issue = _retrying(lambda session: _apply_update(session, issue_id, changes, new_level, reason, user_id))

    logger.info("Issue updated: #%s fields=%s", issue.issue_number, sorted(changes),
                extra={"issue_id": issue.id, "user_id": user_id})
    return issue


def bulk_update_issues(items, user_id: str | None = None) -> dict:
    """Apply several partial updates in one transaction.

    Each item is ``{"id": ..., <fields>}`` and follows update_issue's rules,
    so level changes become escalations and status cannot be written.
    Items without fields are skipped and unknown ids are reported, not fatal.

    Returns:
        {"updated": n, "not_found": [ids]}
    """
    prepared = []
    for index, item in enumerate(_require_list(items, "items")):
        if not isinstance(item, dict) or not item.get("id"):
            raise ValidationError("Each item must have an id", details={f"items[{index}]": "id required"})
        fields = {key: value for key, value in item.items() if key != "id"}
        if not _has_update_fields(fields):
            continue
        try:
            prepared.append((str(item["id"]), *_prepare_update(fields)))
        except ValidationError as exc:
            raise ValidationError(f"items[{index}]: {exc}", details=exc.details) from exc

    def _update_all(session):
        updated, missing = 0, []
        for issue_id, changes, new_level, reason in prepared:
            try:
                _apply_update(session, issue_id, changes, new_level, reason, user_id)
            except NotFoundError:
                missing.append(issue_id)
                continue
            updated += 1
        return {"updated": updated, "not_found": missing}

    result = _retrying(_update_all)
    logger.info("Bulk update: %d updated, %d not found", result["updated"], len(result["not_found"]),
                extra={"user_id": user_id})
    return result


def _delete_rows(session, issue_id: str) -> int:
    """Delete an issue's children, then the issue. Returns the issue rowcount."""
    session.execute(delete(IssueEscalation).where(IssueEscalation.issue_id == issue_id))
    session.execute(delete(IssueResolution).where(IssueResolution.issue_id == issue_id))
    session.execute(delete(AISuggestion).where(AISuggestion.issue_id == issue_id))
    return session.execute(delete(Issue).where(Issue.id == issue_id)).rowcount


def delete_issue(issue_id: str) -> None:
    """Delete an issue and everything hanging off it, children first.

    Raises:
        NotFoundError: Unknown issue.
    """
    with atomic() as session:
        issue = _get_issue_or_404(issue_id)
        number = issue.issue_number
        _delete_rows(session, issue_id)

    logger.info("Issue deleted: #%s", number, extra={"issue_id": issue_id})


def bulk_delete_issues(ids) -> dict:
    """Delete several issues (with their children) in one transaction.

    Unknown ids are skipped. Returns ``{"deleted": n}``.
    """
    ids = [str(issue_id) for issue_id in _require_list(ids, "ids")]
    with atomic() as session:
        deleted = sum(_delete_rows(session, issue_id) for issue_id in ids)

    logger.info("Bulk delete: %d of %d issue(s)", deleted, len(ids))
    return {"deleted": deleted}


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


def get_issue(issue_id: str) -> dict:
    """Issue with reference names, reporter and stored suggestion."""
    issue = _get_issue_or_404(issue_id)
    result = issue.to_dict()
    result["created_by_username"] = issue.creator.username if issue.creator else None
    result["created_by_name"] = issue.creator.display_name if issue.creator else None
    result["ai_suggestion"] = issue.ai_suggestion.to_dict() if issue.ai_suggestion else None
    result["available_transitions"] = get_available_transitions(issue)
    return result


def get_history(issue_id: str) -> dict:
    """Escalations (oldest first) and the resolution, if any."""
    _get_issue_or_404(issue_id)
    escalations = db.session.execute(
        select(IssueEscalation)
        .where(IssueEscalation.issue_id == issue_id)
        .order_by(IssueEscalation.escalated_at.asc(), IssueEscalation.to_level.asc())
    ).scalars().all()
    resolution = db.session.execute(
        select(IssueResolution).where(IssueResolution.issue_id == issue_id)
    ).scalar_one_or_none()
    return {
        "escalations": [e.to_dict() for e in escalations],
        "resolution": resolution.to_dict() if resolution else None,
    }


def _clamp_page(page, per_page) -> tuple[int, int]:
    try:
        page = max(1, int(page))
    except (TypeError, ValueError):
        page = 1
    try:
        per_page = min(MAX_PER_PAGE, max(1, int(per_page)))
    except (TypeError, ValueError):
        per_page = DEFAULT_PER_PAGE
    return page, per_page


def _filtered_issues(filters: dict):
    """select(Issue) narrowed by the list/export filters."""
    stmt = select(Issue)
    if filters.get("status"):
        status = str(filters["status"]).upper()
        if status not in ISSUE_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(ISSUE_STATUSES)}",
                details={"status": "invalid"},
            )
        stmt = stmt.where(Issue.status == status)
    if filters.get("level") not in (None, ""):
        stmt = stmt.where(Issue.level == _coerce_level(filters["level"]))
    if filters.get("category_id"):
        stmt = stmt.where(Issue.category_id == filters["category_id"])
    if filters.get("priority"):
        stmt = stmt.where(Issue.priority == _coerce_priority(filters["priority"]))
    if filters.get("area_id"):
        stmt = stmt.where(Issue.area_id == filters["area_id"])
    if filters.get("search"):
        term = str(filters["search"]).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{term}%"
        stmt = stmt.where(or_(
            Issue.title.ilike(pattern, escape="\\"),
            Issue.description.ilike(pattern, escape="\\"),
        ))
    lower, upper = date_bounds(filters.get("from_date"), filters.get("to_date"))
    if lower:
        stmt = stmt.where(Issue.created_at >= lower)
    if upper:
        stmt = stmt.where(Issue.created_at <= upper)
    return stmt


def list_issues(filters: dict | None = None, page=1, per_page=DEFAULT_PER_PAGE,
                sort_by: str = "created_at", sort_order: str = "desc") -> tuple[list[dict], int]:
    """Filtered, sorted, paginated issue list.

    Filters: status, level, category_id, priority, area_id, search
    (substring of title or description), from_date / to_date (inclusive,
    on created_at). Unknown sort fields fall back to created_at.

    Returns:
        (items, total) where total counts all matching rows.
    """
    page, per_page = _clamp_page(page, per_page)
    stmt = _filtered_issues(filters or {})

    total = db.session.execute(select(func.count()).select_from(stmt.subquery())).scalar() or 0

    sort_col = SORT_FIELDS.get(sort_by, Issue.created_at)
    ordering = sort_col.asc() if str(sort_order).lower() == "asc" else sort_col.desc()
    rows = db.session.execute(
        stmt.order_by(ordering, Issue.issue_number.desc())
        .limit(per_page)
        .offset((page - 1) * per_page)
    ).scalars().all()

    return [issue.to_dict() for issue in rows], total


def export_issues(filters: dict | None = None) -> list[dict]:
    """Every issue matching the list filters, newest first, unpaginated."""
    rows = db.session.execute(
        _filtered_issues(filters or {})
        .order_by(Issue.created_at.desc(), Issue.issue_number.desc())
    ).scalars().all()
    logger.info("Issue export: %d row(s)", len(rows))
    return [issue.to_dict() for issue in rows]


def compute_issue_stats() -> dict:
    """Counts by status, level and category over all issues."""
    total = db.session.execute(select(func.count(Issue.id))).scalar() or 0

    by_status = db.session.execute(
        select(Issue.status, func.count(Issue.id)).group_by(Issue.status).order_by(Issue.status)
    ).all()
    by_level = db.session.execute(
        select(Issue.level, func.count(Issue.id)).group_by(Issue.level).order_by(Issue.level)
    ).all()

    count = func.count(Issue.id).label("count")
    by_category = db.session.execute(
        select(IssueCategory.name, count)
        .select_from(Issue)
        .outerjoin(IssueCategory, Issue.category_id == IssueCategory.id)
        .group_by(IssueCategory.name)
        .order_by(count.desc(), IssueCategory.name)
    ).all()

    return {
        "total": total,
        "by_status": [{"status": s, "count": c} for s, c in by_status],
        "by_level": [{"level": lvl, "count": c} for lvl, c in by_level],
        "by_category": [{"category": name, "count": c} for name, c in by_category],
    }
