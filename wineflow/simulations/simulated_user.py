"""
LLM-as-user simulator for walking a flow as a persona.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from wineflow.simulations.personas import get_persona
from wineflow.state.flow_state import NodeView

logger = logging.getLogger(__name__)


class SimulatedUser:
    def __init__(
        self,
        persona_id: str = "tired_teacher",
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        llm: Optional[Any] = None,
    ) -> None:
        self.persona_id = persona_id
        self.persona = get_persona(persona_id)
        self.model = model
        self.temperature = temperature
        self.llm = llm or ChatOpenAI(model=model, temperature=temperature)

    def respond(self, view: NodeView) -> str:
        """
        Produce the next command for the current view.

        Messages are acknowledged without asking the model; questions are
        answered with a 1-based option number.
        """
        if view["kind"] == "message":
            return ""
        if view["kind"] != "question":
            return "r"

        system = self._build_system_prompt()
        user = self._build_user_prompt(view)
        resp = self.llm.invoke([SystemMessage(content=system), HumanMessage(content=user)])
        text = getattr(resp, "content", "")
        choice = self._parse_choice(text, len(view["options"]))
        if choice is None:
            logger.warning("Simulated user reply %r has no valid option; picking 1", text)
            choice = 1
        return str(choice)

    def _build_system_prompt(self) -> str:
        p = self.persona
        return (
            "You are roleplaying someone using a wine-picking quiz.\n"
            "Stay in character and pick the answer this person would pick.\n\n"
            f"Persona: {p.get('name')}\n"
            f"Mood: {p.get('mood')}\n"
            f"Budget: {p.get('budget')}\n"
            f"Likes: {json.dumps(p.get('likes', []), ensure_ascii=False)}\n"
            f"Dislikes: {json.dumps(p.get('dislikes', []), ensure_ascii=False)}\n"
            f"Tone/style: {json.dumps(p.get('tone_and_style', {}), ensure_ascii=False)}\n\n"
            "Output rules:\n"
            "- Return ONLY the number of the option you pick.\n"
        )

    @staticmethod
    def _build_user_prompt(view: NodeView) -> str:
        options = "\n".join(f"{i}. {label}" for i, label in enumerate(view["options"], start=1))
        return (
            f"Question: {view['text']}\n\n"
            f"Options:\n{options}\n\n"
            "Which option number do you pick?"
        )

    @staticmethod
    def _parse_choice(text: str, option_count: int) -> Optional[int]:
        match = re.search(r"\d+", text or "")
        if not match:
            return None
        choice = int(match.group(0))
        if 1 <= choice <= option_count:
            return choice
        return None
