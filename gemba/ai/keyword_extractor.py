"""Turn a free-text question into search keywords."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator

from gemba.ai.stopwords import DEFAULT_STOPWORDS

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


class KeywordExtractor:
    """Lower-case, strip punctuation, split, drop short words and stop-words.

    Token order and duplicates are preserved. An empty result means the
    question carried no meaningful keywords; it never means "match all".

        >>> list(KeywordExtractor().extract("Show me the machine breakdown issues from today"))
        ['machine', 'breakdown', 'issues', 'today']
    """

    def __init__(self, stopwords: Iterable[str] = DEFAULT_STOPWORDS, min_length: int = 3):
        self.stopwords = frozenset(stopwords)
        self.min_length = min_length

    def extract(self, query: str | None) -> Iterator[str]:
        """Yield keywords from ``query`` in input order (one-shot iterator)."""
        if not isinstance(query, str) or not query:
            return
        cleaned = _NON_ALNUM.sub("", query.lower())
        for token in _WHITESPACE.split(cleaned):
            if len(token) >= self.min_length and token not in self.stopwords:
                yield token


_default_extractor = KeywordExtractor()


def extract_keywords(query: str | None) -> list[str]:
    """Convenience wrapper: materialised keywords using the default stop-words."""
    keywords = list(_default_extractor.extract(query))
    logger.debug("Extracted %d keyword(s) from query", len(keywords))
    return keywords
