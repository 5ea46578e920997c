"""
Default reference data (issue categories, shopfloor areas).

Idempotent: existing names are left untouched, so the seed can run on every
deploy.

Usage:
    from gemba.services.reference_data import seed_reference_data
    created = seed_reference_data()   # {"categories": 6, "areas": 5}
"""

import logging

from sqlalchemy import select

from gemba.models.reference import Area, IssueCategory
from gemba.utils.helpers import atomic

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = (
    "Equipment",
    "Quality",
    "Safety",
    "Delivery",
    "Material",
    "Training",
)

DEFAULT_AREAS = (
    "Assembly",
    "Machining",
    "Painting",
    "Packaging",
    "Warehouse",
)


def _seed(session, model, names) -> int:
    existing = set(session.execute(select(model.name).where(model.name.in_(names))).scalars())
    created = 0
    for name in names:
        if name not in existing:
            session.add(model(name=name))
            created += 1
    return created


def seed_reference_data(categories=DEFAULT_CATEGORIES, areas=DEFAULT_AREAS) -> dict:
    """Insert missing categories and areas. Returns how many of each were created."""
    with atomic() as session:
        result = {
            "categories": _seed(session, IssueCategory, categories),
            "areas": _seed(session, Area, areas),
        }
    logger.info("Reference data seeded: %s", result)
    return result
