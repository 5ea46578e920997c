"""
Rule-based remediation suggestions for new issues.

The classifier concatenates title, description and category name, lower-
cases the result and walks an ordered rule table. The first rule with any
keyword contained in the text wins; later rules are not evaluated. When no
rule matches the generic fallback is returned.

Rule order is significant: identical inputs must always produce identical
suggestion text, so new rules go at the end unless a re-prioritisation is
intended.

Usage:
    from gemba.ai.suggestion_classifier import classify

    text = classify("Machine breakdown on line 3", "", None)
"""

from __future__ import annotations

from dataclasses import dataclass

# Fixed, not learned from the match
SUGGESTION_CONFIDENCE = 0.75


@dataclass(frozen=True)
class SuggestionRule:
    name: str
    keywords: tuple[str, ...]
    text: str

    def matches(self, text: str) -> bool:
        return any(kw in text for kw in self.keywords)


SUGGESTION_RULES: tuple[SuggestionRule, ...] = (
    SuggestionRule(
        name="equipment",
        keywords=("machine", "equipment", "breakdown"),
        text=(
            "Consider scheduling preventive maintenance and checking the equipment "
            "maintenance log for recurring issues. Verify that the maintenance checklist "
            "was followed during the last service."
        ),
    ),
    SuggestionRule(
        name="quality",
        keywords=("quality", "defect", "reject"),
        text=(
            "Perform a root cause analysis using the 5-Why method. Check if standard "
            "operating procedures are being followed and verify incoming material quality."
        ),
    ),
    SuggestionRule(
        name="safety",
        keywords=("safety", "hazard", "accident", "injury"),
        text=(
            "Immediately secure the area and assess risk level. Conduct a safety audit "
            "and review PPE compliance. Update the risk assessment matrix accordingly."
        ),
    ),
    SuggestionRule(
        name="flow",
        keywords=("delay", "late", "slow", "bottleneck"),
        text=(
            "Analyze the production flow to identify bottlenecks. Consider implementing "
            "lean principles such as value stream mapping to optimize throughput."
        ),
    ),
    SuggestionRule(
        name="material",
        keywords=("material", "supply", "stock", "inventory"),
        text=(
            "Review inventory levels and reorder points. Coordinate with the supply chain "
            "team to ensure material availability and consider safety stock adjustments."
        ),
    ),
    SuggestionRule(
        name="training",
        keywords=("training", "skill", "knowledge"),
        text=(
            "Identify skill gaps and schedule targeted training sessions. Consider "
            "implementing a mentoring program and updating training documentation."
        ),
    ),
)

FALLBACK_RULE_NAME = "general"
FALLBACK_SUGGESTION = (
    "Investigate the issue following standard problem-solving methodology. Document "
    "findings and engage the relevant team leads for a collaborative resolution."
)


class SuggestionClassifier:
    """First-match-wins classifier over an ordered rule table."""

    def __init__(self, rules: tuple[SuggestionRule, ...] = SUGGESTION_RULES,
                 fallback: str = FALLBACK_SUGGESTION):
        self.rules = tuple(rules)
        self.fallback = fallback

    @staticmethod
    def _text(title, description, category) -> str:
        return f"{title or ''} {description or ''} {category or ''}".lower()

    def match(self, title: str, description: str | None = None,
              category: str | None = None) -> SuggestionRule | None:
        text = self._text(title, description, category)
        for rule in self.rules:
            if rule.matches(text):
                return rule
        return None

    def classify(self, title: str, description: str | None = None,
                 category: str | None = None) -> str:
        rule = self.match(title, description, category)
        return rule.text if rule else self.fallback

    def classify_rule(self, title: str, description: str | None = None,
                      category: str | None = None) -> str:
        rule = self.match(title, description, category)
        return rule.name if rule else FALLBACK_RULE_NAME


_default_classifier = SuggestionClassifier()


def classify(title: str, description: str | None = None, category: str | None = None) -> str:
    """Suggestion text for an issue using the default rule table."""
    return _default_classifier.classify(title, description, category)


def classify_rule(title: str, description: str | None = None, category: str | None = None) -> str:
    """Name of the winning rule (``"general"`` when none matched)."""
    return _default_classifier.classify_rule(title, description, category)
