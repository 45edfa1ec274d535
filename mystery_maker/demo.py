"""Create demo mysteries for development/testing."""

import shutil

from mystery_maker import storage
from mystery_maker.generation import save_structured_package_data
from mystery_maker.models import MysteryForm
from mystery_maker.mysteries import create_mystery

DEMO_USER = "demo-user"

DEMO_REPLY = """# "THE LAST CURTAIN" - A MURDER MYSTERY

## PREMISE
Opening night at the Gilded Lantern theatre ends in silence: the director
is found dead in her dressing room minutes before the final bow.

## VICTIM
**Vivienne Hart** - A brilliant, ruthless director with too many enemies.

## CHARACTER LIST (6 PLAYERS)
1. **Leo Marsh** - The understudy who finally got his chance
2. **Greta Voss** - The producer with unpaid debts
3. **Felix Crane** - The stagehand who sees everything

## MURDER METHOD
Poisoned stage wine, swapped during the second act.

Would this murder mystery concept work for your event?"""

DEMO_PACKAGE = {
    "title": "The Last Curtain",
    "gameOverview": "A theatre murder for six players.",
    "hostGuide": "Read the premise aloud, then hand out character guides.",
    "materials": "Character guides, evidence cards, a prop wine glass.",
    "preparation": "Print one guide per guest.",
    "timeline": "Act one at 7pm, the murder at 8pm.",
    "hostingTips": "Keep the rounds to 15 minutes each.",
    "evidenceCards": "Card 1: a torn program with lipstick on it.",
    "relationshipMatrix": "Leo resents Greta; Felix adores Vivienne.",
    "detectiveScript": "Inspector: Nobody leaves this theatre tonight.",
    "characters": [
        {
            "name": "Leo Marsh",
            "description": "The understudy.",
            "secret": "He rehearsed the final scene in secret.",
            "round1Statement": "I was in the wings all night.",
            "relationships": [{"character": "Greta Voss", "description": "Owes her money"}],
        },
        {
            "name": "Greta Voss",
            "description": "The producer.",
            "secret": "The theatre is bankrupt.",
            "round1Statement": "I was counting the ticket sales.",
        },
        {
            "name": "Felix Crane",
            "description": "The stagehand.",
            "secret": "He saw someone near the prop table.",
            "round1Statement": "I was on the fly rail.",
        },
    ],
}


def create_demo_data() -> None:
    """Wipe existing conversations/packages and create fresh demo data."""
    for directory in (storage.conversations_dir(), storage.packages_dir()):
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True, exist_ok=True)

    draft = create_mystery(DEMO_USER, MysteryForm(theme="1920s Speakeasy", player_count=8))
    storage.append_message(draft["id"], "assistant", "How many players will attend, and should there be an accomplice?")

    finished = create_mystery(DEMO_USER, MysteryForm(theme="Theatre", player_count=6))
    storage.append_message(finished["id"], "assistant", DEMO_REPLY)
    storage.update_conversation(finished["id"], {"title": "The Last Curtain"})
    save_structured_package_data(finished["id"], DEMO_PACKAGE)
