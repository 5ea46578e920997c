"""
Gemba Issue Tracker
Rule-based "AI" helpers. No model calls; everything here is deterministic.

Submodules:
    - suggestion_classifier: first-match remediation hints for new issues
    - keyword_extractor / stopwords: free-text question → search keywords
    - relevance: weighted keyword scoring and ranking of issues
"""
