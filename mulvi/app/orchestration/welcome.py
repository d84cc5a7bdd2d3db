from typing import Optional, Tuple

from ..models.conversation import DEFAULT_USER_NAME, UserContext

DEFAULT_WELCOME = (
    "Assalamu alaikum! I'm Mulvi, your prayer companion. I'm here to support your "
    "journey toward a more consistent and meaningful prayer practice."
)

# First matching keyword in the primary motivation wins
MOTIVATION_LINES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("reconnect",), "It's beautiful that you're seeking to reconnect with prayer. Each step back to prayer is a step toward peace."),
    (("peace",), "In the midst of life's chaos, I'm here to help you find moments of tranquility through prayer."),
    (("forget", "miss"), "I'll be your gentle reminder for prayers, making it easier to stay consistent in your practice."),
    (("habit", "consistency"), "Together, we'll build a beautiful prayer habit that becomes a natural part of your day."),
)

STORY_LINES = {
    "returning after a break": "It's never too late to return to what matters. We'll take it one prayer at a time.",
    "just starting my journey": "Every journey begins with a single step. I'm honored to be with you from the beginning.",
    "maintaining my practice": "I'm here to help you deepen and enrich your existing practice.",
    "seeking deeper connection": "The search for deeper meaning is sacred. I'm here to support your spiritual growth.",
}


def _motivation_line(motivation: str) -> Optional[str]:
    text = motivation.lower()
    for keywords, line in MOTIVATION_LINES:
        if any(k in text for k in keywords):
            return line
    return None


def personalized_welcome(context: UserContext) -> str:
    if context.user_name == DEFAULT_USER_NAME and not context.motivations and not context.prayer_story:
        return DEFAULT_WELCOME

    parts = [f"Assalamu alaikum {context.user_name}! I'm Mulvi, your prayer companion."]
    line = _motivation_line(context.motivations[0]) if context.motivations else None
    parts.append(line or "I'm here to support your journey.")
    story = STORY_LINES.get((context.prayer_story or "").strip().lower())
    if story:
        parts.append(story)
    return " ".join(parts)
