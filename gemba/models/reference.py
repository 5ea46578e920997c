"""
Gemba Issue Tracker
Reference tables owned by the configuration module.

Models:
    - IssueCategory: classification used by reports and suggestions
    - Area: shopfloor area an issue was raised in
    - User: shopfloor user with a numeric role level

Only the columns the issue workflow reads are modelled here; CRUD on these
tables is done by the admin tooling.
"""

import uuid
from datetime import datetime, timezone

from gemba.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# Role levels used by the API gate (see gemba.auth.require_role)
ROLE_LEVELS = {
    "operator": 1,
    "team_lead": 2,
    "manager": 3,
    "admin": 99,
}


class IssueCategory(db.Model):
    __tablename__ = "issue_categories"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<IssueCategory {self.name}>"


class Area(db.Model):
    __tablename__ = "areas"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Area {self.name}>"


class User(db.Model):
    """A shopfloor user. role_level drives the API permission gate."""

    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    username = db.Column(db.String(80), unique=True, nullable=False)
    display_name = db.Column(db.String(150), default="")
    role = db.Column(db.String(30), default="operator")
    role_level = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.display_name,
            "role": self.role,
            "role_level": self.role_level,
        }

    def __repr__(self):
        return f"<User {self.username} (L{self.role_level})>"
