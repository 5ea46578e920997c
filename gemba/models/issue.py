"""
Gemba Issue Tracker
Issue domain models.

Models:
    - Issue: a shopfloor problem report (aggregate root)
    - IssueEscalation: immutable, append-only escalation history entry
    - IssueResolution: closure record (at most one per issue)
    - AISuggestion: rule-based remediation hint captured at creation time

Architecture chain: Issue → IssueEscalation* / IssueResolution? / AISuggestion?
Children are removed together with their issue (FK ON DELETE CASCADE +
ORM delete-orphan).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select

from gemba.models import db
from gemba.models.reference import User


# ── Constants ────────────────────────────────────────────────────────────────

STATUS_OPEN = "OPEN"
STATUS_ESCALATED = "ESCALATED"
STATUS_RESOLVED = "RESOLVED"
ISSUE_STATUSES = (STATUS_OPEN, STATUS_ESCALATED, STATUS_RESOLVED)

ISSUE_PRIORITIES = ("LOW", "MEDIUM", "HIGH")
ISSUE_SOURCES = ("manual", "gemba", "production")

ISSUE_LEVELS = (1, 2, 3, 4)
MIN_LEVEL = ISSUE_LEVELS[0]
MAX_LEVEL = ISSUE_LEVELS[-1]


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ═══════════════════════════════════════════════════════════════════════════
#  ISSUE
# ═══════════════════════════════════════════════════════════════════════════

class Issue(db.Model):
    """
    A problem raised on the shopfloor and tracked through the L1-L4 tiers.

    status/level are owned by the lifecycle service: level only ever
    increases and RESOLVED is terminal.
    """

    __tablename__ = "issues"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    issue_number = db.Column(db.Integer, unique=True, nullable=False, index=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_OPEN, index=True)
    level = db.Column(db.Integer, nullable=False, default=MIN_LEVEL, index=True)
    priority = db.Column(db.String(10), nullable=False, default="MEDIUM")
    source = db.Column(db.String(20), nullable=False, default="manual")

    category_id = db.Column(
        db.String(36),
        db.ForeignKey("issue_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    area_id = db.Column(
        db.String(36),
        db.ForeignKey("areas.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by = db.Column(db.String(36), nullable=True, comment="users.id of the reporter")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    category = db.relationship("IssueCategory")
    area = db.relationship("Area")
    creator = db.relationship(
        User,
        primaryjoin="foreign(Issue.created_by) == User.id",
        viewonly=True,
    )

    escalations = db.relationship(
        "IssueEscalation",
        back_populates="issue",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="IssueEscalation.escalated_at",
    )
    resolution = db.relationship(
        "IssueResolution",
        back_populates="issue",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )
    ai_suggestion = db.relationship(
        "AISuggestion",
        back_populates="issue",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    @property
    def is_terminal(self) -> bool:
        return self.status == STATUS_RESOLVED

    def to_dict(self):
        return {
            "id": self.id,
            "issue_number": self.issue_number,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "level": self.level,
            "priority": self.priority,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "area_id": self.area_id,
            "area_name": self.area.name if self.area else None,
            "source": self.source,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Issue #{self.issue_number} L{self.level} {self.status}: {self.title[:40]}>"


# ═══════════════════════════════════════════════════════════════════════════
#  ESCALATION HISTORY
# ═══════════════════════════════════════════════════════════════════════════

class IssueEscalation(db.Model):
    """One step up the escalation ladder. Never updated after insert."""

    __tablename__ = "issue_escalations"
    __table_args__ = (
        db.CheckConstraint("to_level > from_level", name="ck_issue_escalations_upward"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    issue_id = db.Column(
        db.String(36),
        db.ForeignKey("issues.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_level = db.Column(db.Integer, nullable=False)
    to_level = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    escalated_by = db.Column(db.String(36), nullable=True, comment="users.id")
    escalated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    issue = db.relationship("Issue", back_populates="escalations")
    escalator = db.relationship(
        User,
        primaryjoin="foreign(IssueEscalation.escalated_by) == User.id",
        viewonly=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "from_level": self.from_level,
            "to_level": self.to_level,
            "reason": self.reason,
            "escalated_by": self.escalated_by,
            "escalated_by_username": self.escalator.username if self.escalator else None,
            "escalated_by_name": self.escalator.display_name if self.escalator else None,
            "escalated_at": _iso(self.escalated_at),
        }

    def __repr__(self):
        return f"<IssueEscalation {self.issue_id}: L{self.from_level}→L{self.to_level}>"


# ═══════════════════════════════════════════════════════════════════════════
#  RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════

class IssueResolution(db.Model):
    """Closure record with optional impact metrics."""

    __tablename__ = "issue_resolutions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    issue_id = db.Column(
        db.String(36),
        db.ForeignKey("issues.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    resolution = db.Column(db.Text, nullable=False)
    resolved_by = db.Column(db.String(36), nullable=True, comment="users.id")
    resolved_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    downtime_prevented = db.Column(db.Float, nullable=True, comment="minutes")
    defects_reduced = db.Column(db.Float, nullable=True)
    cost_savings = db.Column(db.Float, nullable=True)

    issue = db.relationship("Issue", back_populates="resolution")
    resolver = db.relationship(
        User,
        primaryjoin="foreign(IssueResolution.resolved_by) == User.id",
        viewonly=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "resolution": self.resolution,
            "resolved_by": self.resolved_by,
            "resolved_by_username": self.resolver.username if self.resolver else None,
            "resolved_by_name": self.resolver.display_name if self.resolver else None,
            "resolved_at": _iso(self.resolved_at),
            "downtime_prevented": self.downtime_prevented,
            "defects_reduced": self.defects_reduced,
            "cost_savings": self.cost_savings,
        }

    def __repr__(self):
        return f"<IssueResolution {self.issue_id}>"


# ═══════════════════════════════════════════════════════════════════════════
#  AI SUGGESTION
# ═══════════════════════════════════════════════════════════════════════════

class AISuggestion(db.Model):
    """Remediation hint produced by the suggestion classifier on creation."""

    __tablename__ = "ai_suggestions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    issue_id = db.Column(
        db.String(36),
        db.ForeignKey("issues.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    suggested_level = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    confidence = db.Column(db.Float, nullable=False, comment="0.0 – 1.0")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    issue = db.relationship("Issue", back_populates="ai_suggestion")

    def to_dict(self):
        return {
            "id": self.id,
            "suggested_level": self.suggested_level,
            "reason": self.reason,
            "confidence": self.confidence,
        }

    def __repr__(self):
        return f"<AISuggestion {self.issue_id} L{self.suggested_level}>"


# ═══════════════════════════════════════════════════════════════════════════
#  ISSUE NUMBER ALLOCATION
# ═══════════════════════════════════════════════════════════════════════════

def next_issue_number() -> int:
    """
    Return the next sequential issue number.

    Locks the current highest row (SELECT ... FOR UPDATE where supported).
    issue_number is unique, so a concurrent allocation that slips through
    surfaces as IntegrityError and callers retry.
    """
    last = db.session.execute(
        select(Issue.issue_number)
        .order_by(Issue.issue_number.desc())
        .limit(1)
        .with_for_update()
    ).scalar()
    return (last + 1) if last else 1
