import random

from mulvi.app.models.conversation import UserContext
from mulvi.app.orchestration.prompt import build_system_prompt
from mulvi.app.orchestration.welcome import DEFAULT_WELCOME, personalized_welcome
from mulvi.app.services.community import community_presence


def test_default_welcome_without_personal_data():
    assert personalized_welcome(UserContext()) == DEFAULT_WELCOME


def test_welcome_uses_name_motivation_and_story():
    ctx = UserContext(userName="Amina", motivations=["I keep forgetting Asr"], prayerStory="Returning after a break")
    msg = personalized_welcome(ctx)
    assert msg.startswith("Assalamu alaikum Amina!")
    assert "gentle reminder" in msg
    assert "one prayer at a time" in msg


def test_welcome_with_unmatched_motivation_falls_back_to_generic_line():
    msg = personalized_welcome(UserContext(userName="Yusuf", motivations=["accountability"]))
    assert msg == "Assalamu alaikum Yusuf! I'm Mulvi, your prayer companion. I'm here to support your journey."


def test_community_presence_is_simulated_and_bounded():
    rng = random.Random(7)
    for _ in range(50):
        presence = community_presence(rng)
        assert presence["simulated"] is True
        assert 80 <= presence["praying_now"] <= 249


def test_community_presence_never_reaches_prompt():
    ctx = UserContext(userName="Amina")
    before = build_system_prompt(ctx)
    community_presence(random.Random(1))
    assert build_system_prompt(ctx) == before
    assert "praying now" not in before.lower()
