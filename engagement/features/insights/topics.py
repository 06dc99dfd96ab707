"""
Topic detection for insight phrasing.

Scans the session title and description for keyword families and returns the
phrase table for the first family that matches. Topics only change message
text, never an insight's type or priority.
"""

import re
from typing import Optional, Pattern, Tuple

from pydantic import BaseModel, ConfigDict

from engagement.models.activity import SessionMetadata


GENERIC_TOPIC = "generic"


class PhraseTable(BaseModel):
    """One suggestion per message slot."""
    model_config = ConfigDict(frozen=True)

    immediate: str
    urgent: str
    medium: str
    success: str
    participation: str
    engagement: str
    momentum: str
    reengage: str
    checkpoint: str


GENERIC_PHRASES = PhraseTable(
    immediate="Create an engaging poll about the current topic",
    urgent='Launch a quick "Yes/No" poll to re-engage participants',
    medium="Add a discussion question or share a relevant resource",
    success="Dive deeper with advanced questions or case studies",
    participation='Ask "What\'s your biggest question about this topic?"',
    engagement='"Share one word that describes your experience so far"',
    momentum="Build on this energy with interactive scenarios",
    reengage='Ask: "What would you like to explore next?"',
    checkpoint="Time for a quick knowledge check or Q&A session",
)

# (topic, keywords, phrases), in match order
TOPIC_FAMILIES: Tuple[Tuple[str, Tuple[str, ...], PhraseTable], ...] = (
    (
        "ai_ml",
        (
            "ai", "ml", "aiml", "artificial intelligence", "machine learning", "deep learning",
            "neural", "data science", "tensorflow", "pytorch", "sklearn", "algorithm",
            "model", "prediction",
        ),
        PhraseTable(
            immediate='Poll: "What\'s your experience with AI/ML?" (Beginner/Intermediate/Advanced)',
            urgent='Quick poll: "Supervised or Unsupervised learning?" or "Python or R for ML?"',
            medium="Share an AI/ML use case or ask about real-world applications they've seen",
            success="Dive into advanced algorithms, model optimization, or ethical AI discussions",
            participation='"What\'s the most exciting AI application you\'ve heard about?"',
            engagement='"One word: What comes to mind when you hear \'AI\'?"',
            momentum='Present an AI scenario: "How would you solve this with ML?"',
            reengage='"What AI trend excites or worries you most?"',
            checkpoint='Quick AI quiz: "What\'s the difference between AI and ML?" or share AI news',
        ),
    ),
    (
        "tech",
        ("tech", "programming", "coding", "code", "software", "development", "computer", "digital"),
        PhraseTable(
            immediate='Poll: "What\'s your experience level with this technology?"',
            urgent='Quick poll: "Which IDE do you prefer?" or "Tabs vs Spaces?"',
            medium="Share a code snippet or ask about real-world applications",
            success="Dive into advanced patterns or architecture discussions",
            participation='"What\'s the biggest challenge you face with this tech?"',
            engagement='"One word: How do you feel about this technology?"',
            momentum="Present a coding challenge or technical scenario",
            reengage='"What technology trend excites you most?"',
            checkpoint='Quick tech quiz or "Show and tell" your current project',
        ),
    ),
    (
        "business",
        ("business", "marketing", "sales"),
        PhraseTable(
            immediate='Poll: "What\'s your biggest business challenge?"',
            urgent='Quick poll: "B2B or B2C?" or "Startup or Enterprise?"',
            medium="Share a case study or ask about market experiences",
            success="Explore advanced strategies or industry insights",
            participation='"What\'s one business lesson you learned recently?"',
            engagement='"One word: Describe your ideal customer"',
            momentum="Present a business scenario or market analysis",
            reengage='"What business trend worries you most?"',
            checkpoint="Quick business quiz or share success stories",
        ),
    ),
    (
        "design",
        ("design", "creative", "art"),
        PhraseTable(
            immediate='Poll: "What\'s your favorite design tool?"',
            urgent='Quick poll: "Dark mode or Light mode?" or "Minimalist or Detailed?"',
            medium="Share design inspiration or critique examples",
            success="Explore advanced design principles or portfolio reviews",
            participation='"What\'s your design philosophy in one sentence?"',
            engagement='"One word: Describe good design"',
            momentum="Present a design challenge or critique session",
            reengage='"What design trend do you love or hate?"',
            checkpoint="Quick design quiz or show your recent work",
        ),
    ),
    (
        "education",
        ("education", "learning", "training", "course", "tutorial", "workshop"),
        PhraseTable(
            immediate='Poll: "What\'s your preferred learning style?"',
            urgent='Quick poll: "Video or Text?" or "Theory or Practice?"',
            medium="Share learning resources or discuss study methods",
            success="Explore advanced pedagogical techniques",
            participation='"What\'s the best lesson you\'ve learned recently?"',
            engagement='"One word: Describe effective learning"',
            momentum="Present a learning challenge or knowledge test",
            reengage='"What skill do you want to master next?"',
            checkpoint="Quick knowledge check or share learning tips",
        ),
    ),
    (
        "data_science",
        ("data", "analytics", "statistics", "visualization", "pandas", "numpy"),
        PhraseTable(
            immediate='Poll: "What\'s your go-to data analysis tool?" (Excel/Python/R/SQL)',
            urgent='Quick poll: "Pandas or NumPy?" or "Jupyter or VS Code?"',
            medium="Share a dataset example or discuss data cleaning challenges",
            success="Explore advanced statistical methods or visualization techniques",
            participation='"What\'s the messiest dataset you\'ve worked with?"',
            engagement='"One word: Describe working with data"',
            momentum='Present a data problem: "How would you analyze this?"',
            reengage='"What data trend interests you most?"',
            checkpoint="Quick data quiz or share interesting data insights",
        ),
    ),
)


def _keyword_pattern(keywords: Tuple[str, ...]) -> Pattern[str]:
    alternatives = "|".join(re.escape(kw) for kw in keywords)
    return re.compile(rf"\b(?:{alternatives})\b")


_COMPILED_FAMILIES = tuple(
    (topic, _keyword_pattern(keywords), phrases) for topic, keywords, phrases in TOPIC_FAMILIES
)


def detect_topic(metadata: Optional[SessionMetadata]) -> Tuple[str, PhraseTable]:
    """
    Detect the session topic.

    Keywords match whole words only, so "ai" does not fire on "maintain".

    Returns:
        (topic name, phrase table); (GENERIC_TOPIC, GENERIC_PHRASES) when
        metadata is missing or nothing matches
    """
    if metadata is None:
        return GENERIC_TOPIC, GENERIC_PHRASES

    content = f"{metadata.title or ''} {metadata.description or ''}".lower()
    if not content.strip():
        return GENERIC_TOPIC, GENERIC_PHRASES

    for topic, pattern, phrases in _COMPILED_FAMILIES:
        if pattern.search(content):
            return topic, phrases
    return GENERIC_TOPIC, GENERIC_PHRASES
