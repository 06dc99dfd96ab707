"""
engagement/tests/test_topic_detection.py

Topic detection picks the first matching keyword family by whole word.
"""

import pytest

from engagement.features.insights.topics import (
    GENERIC_PHRASES,
    GENERIC_TOPIC,
    TOPIC_FAMILIES,
    detect_topic,
)
from engagement.models.activity import SessionMetadata


def _meta(title=None, description=None):
    return SessionMetadata(session_id="s-1", title=title, description=description)


class TestDetectTopic:

    @pytest.mark.parametrize(
        "title,description,expected",
        [
            ("Intro to Machine Learning", None, "ai_ml"),
            ("AI/ML office hours", None, "ai_ml"),
            ("Software craftsmanship", "Clean coding habits", "tech"),
            ("Intro to computer code", None, "tech"),
            ("Digital photography basics", None, "tech"),
            ("Quarterly Sales Kickoff", None, "business"),
            ("Design critique", None, "design"),
            ("Onboarding workshop", None, "education"),
            ("Exploring pandas", "Data wrangling", "data_science"),
        ],
    )
    def test_families(self, title, description, expected):
        topic, _ = detect_topic(_meta(title, description))
        assert topic == expected

    def test_earlier_family_wins(self):
        """'machine learning' (ai_ml) beats 'learning' (education)."""
        topic, phrases = detect_topic(_meta("Machine learning course"))

        assert topic == "ai_ml"
        assert phrases == TOPIC_FAMILIES[0][2]

    def test_keywords_match_whole_words_only(self):
        """'ai' inside 'maintain' and 'art' inside 'party' are not matches."""
        topic, phrases = detect_topic(_meta("How we maintain the party planning doc"))

        assert topic == GENERIC_TOPIC
        assert phrases == GENERIC_PHRASES

    def test_missing_metadata_is_generic(self):
        assert detect_topic(None) == (GENERIC_TOPIC, GENERIC_PHRASES)

    def test_empty_metadata_is_generic(self):
        assert detect_topic(_meta()) == (GENERIC_TOPIC, GENERIC_PHRASES)

    def test_every_table_fills_every_slot(self):
        for _, _, phrases in TOPIC_FAMILIES:
            assert all(value.strip() for value in phrases.model_dump().values())
