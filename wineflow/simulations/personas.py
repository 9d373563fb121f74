"""
Persona definitions for "LLM-as-user" flow walkthroughs.

Each persona describes a drinker whose answers the simulated user picks from
the flow's options.
"""

from __future__ import annotations

from typing import Any


PERSONAS: dict[str, dict[str, Any]] = {
    "tired_teacher": {
        "name": "Tired secondary-school teacher",
        "mood": "end of a long week, wants to put their feet up",
        "budget": "about £10-15, will stretch for something special",
        "likes": ["reds with soft tannins", "anything that goes with a takeaway"],
        "dislikes": ["fizz", "anything that needs decanting"],
        "tone_and_style": {
            "voice": "dry humour, a bit weary",
            "behavior": ["picks the comfortable option", "avoids anything fussy"],
        },
    },
    "celebrating_grad": {
        "name": "Freshly graduated student",
        "mood": "celebrating with friends tonight",
        "budget": "tight, but it is a special occasion",
        "likes": ["bubbles", "trying new things"],
        "dislikes": ["sweet wine"],
        "tone_and_style": {
            "voice": "excited and chatty",
            "behavior": ["picks the adventurous option", "leans towards sharing bottles"],
        },
    },
}


def get_persona(persona_id: str) -> dict[str, Any]:
    if persona_id not in PERSONAS:
        raise KeyError(f"Unknown persona_id: {persona_id}. Available: {', '.join(sorted(PERSONAS.keys()))}")
    return PERSONAS[persona_id]
