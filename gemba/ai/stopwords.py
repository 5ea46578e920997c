"""Filler words dropped from free-text search questions.

Common English function words plus the query verbs people type in front of
what they actually want ("show", "find", "list"). Immutable; pass a
different set to KeywordExtractor to change it.
"""

DEFAULT_STOPWORDS = frozenset({
    # articles, auxiliaries, modals
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "shall",
    "should", "may", "might", "must", "can", "could",
    # prepositions
    "of", "in", "to", "for", "with", "on", "at", "from", "by", "about", "as", "into",
    "through", "during", "before", "after", "above", "below", "between",
    # conjunctions, quantifiers
    "and", "or", "but", "not", "no", "nor", "so", "yet", "both", "either",
    "neither", "each", "every", "all", "any", "few", "more", "most",
    "other", "some", "such", "than", "too", "very", "just",
    # question words, pronouns
    "how", "what", "when", "where", "which", "who", "why",
    "this", "that", "these", "those",
    "it", "its", "my", "me", "we", "our", "your", "their", "them", "i",
    # query verbs
    "show", "find", "get", "list", "give", "tell", "many", "much",
})
