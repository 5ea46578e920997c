#!/usr/bin/env python3
"""
Gemba Issue Tracker: demo data seed script.

Seeds reference data, a handful of users and a set of issues walked through
the lifecycle service, so dashboards and reports have something to show.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --append
    python scripts/seed_demo_data.py --verbose
"""

import argparse
import sys
from datetime import datetime, timedelta, timezone

sys.path.insert(0, ".")

from sqlalchemy import delete, select

from gemba import create_app
from gemba.models import db
from gemba.models.issue import AISuggestion, Issue, IssueEscalation, IssueResolution
from gemba.models.reference import ROLE_LEVELS, Area, IssueCategory, User
from gemba.services.issue_lifecycle import create_issue, escalate_issue, resolve_issue
from gemba.services.reference_data import seed_reference_data


DEMO_USERS = [
    {"id": "demo-operator", "username": "operator", "display_name": "Line Operator", "role": "operator"},
    {"id": "demo-lead", "username": "lead", "display_name": "Shift Lead", "role": "team_lead"},
    {"id": "demo-manager", "username": "manager", "display_name": "Plant Manager", "role": "manager"},
    {"id": "demo-admin", "username": "admin", "display_name": "Administrator", "role": "admin"},
]

# (title, description, category, area, priority, escalations[(level, reason)], resolution, age_hours, resolve_after_hours)
DEMO_ISSUES = [
    ("Conveyor belt stopped on line 2", "Motor overheated, belt not moving",
     "Equipment", "Assembly", "HIGH", [(2, "Spare motor not in stock")],
     "Replaced motor, scheduled PM", 72, 30),
    ("Paint defects on door panels", "Orange peel finish on 12 parts",
     "Quality", "Painting", "MEDIUM", [],
     "Adjusted spray gun pressure", 50, 6),
    ("Oil leak near press 4", "Slip hazard in walkway",
     "Safety", "Machining", "HIGH", [(2, "Recurring leak"), (3, "Needs capex for new seals")],
     None, 40, None),
    ("Waiting for material at station 7", "Bottleneck, pallets delayed from warehouse",
     "Delivery", "Warehouse", "MEDIUM", [],
     "Re-sequenced forklift route", 30, 20),
    ("Wrong part numbers in kitting", "Supplier shipped mislabeled boxes",
     "Material", "Warehouse", "LOW", [(2, "Supplier contact needed")],
     None, 20, None),
    ("New hire unsure of torque procedure", "Work instruction unclear",
     "Training", "Assembly", "LOW", [],
     "Updated work instruction and retrained", 12, 3),
    ("Label printer jams", None,
     None, "Packaging", "MEDIUM", [],
     None, 2, None),
]


def _reset():
    """Remove existing issue data (reference data and users are kept)."""
    for model in (IssueEscalation, IssueResolution, AISuggestion, Issue):
        db.session.execute(delete(model))
    db.session.commit()


def _seed_users(verbose=False):
    created = 0
    for u in DEMO_USERS:
        if db.session.get(User, u["id"]):
            if verbose:
                print(f"   ⏩ User '{u['username']}' already exists")
            continue
        db.session.add(User(role_level=ROLE_LEVELS[u["role"]], **u))
        created += 1
    db.session.commit()
    return created


def _lookup_ids(model):
    return {name: id_ for id_, name in db.session.execute(select(model.id, model.name))}


def _seed_issues(verbose=False):
    categories = _lookup_ids(IssueCategory)
    areas = _lookup_ids(Area)
    now = datetime.now(timezone.utc)

    for (title, description, category, area, priority, escalations,
         resolution, age_hours, resolve_after) in DEMO_ISSUES:
        issue, suggestion = create_issue(
            {
                "title": title,
                "description": description,
                "category_id": categories.get(category),
                "area_id": areas.get(area),
                "priority": priority,
                "source": "gemba",
            },
            "demo-operator",
        )
        created_at = now - timedelta(hours=age_hours)
        issue.created_at = created_at
        db.session.commit()

        for step, (level, reason) in enumerate(escalations, start=1):
            _, esc = escalate_issue(issue.id, level, reason, "demo-operator")
            esc.escalated_at = created_at + timedelta(hours=step)
            db.session.commit()

        if resolution:
            _, res = resolve_issue(issue.id, {"resolution": resolution}, "demo-lead")
            res.resolved_at = created_at + timedelta(hours=resolve_after)
            db.session.commit()

        if verbose:
            print(f"   ✅ #{issue.issue_number} {title} → L{suggestion.suggested_level} suggestion")

    return len(DEMO_ISSUES)


def seed_all(app, append=False, verbose=False):
    with app.app_context():
        if not append:
            print("🧹 Clearing existing issues...")
            _reset()

        print("\n📚 Seeding reference data...")
        ref = seed_reference_data()
        print(f"   {ref['categories']} categories, {ref['areas']} areas created")

        print("\n👤 Seeding demo users...")
        print(f"   {_seed_users(verbose)} users created")

        print("\n🏭 Seeding issues...")
        print(f"   {_seed_issues(verbose)} issues created")

    print(f"\n{'='*60}\n✅ Demo data ready\n{'='*60}\n")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--append", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    app = create_app()
    print(f"🎯 DB: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
    seed_all(app, append=args.append, verbose=args.verbose)


if __name__ == "__main__":
    main()
