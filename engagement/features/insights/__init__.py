"""
Session Insight Engine

Derives actionable intelligence from session metrics and participant analyses:
- Organizer insights (alerts, recommendations, celebrations)
- Personal participant insights
- Recommendation bundles and a session health summary

All logic is deterministic and explainable.
"""
