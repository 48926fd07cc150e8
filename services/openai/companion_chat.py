"""Single-turn chat completion used when the realtime upstream is unavailable."""

import logging
from typing import Dict, List

from openai import AsyncOpenAI

from services.realtime.errors import ExternalCapabilityError

DEFAULT_CHAT_MODEL = "gpt-4o"


class CompanionChat:
    """Ask a chat model for one companion reply."""

    def __init__(self, client: AsyncOpenAI, *, model: str = DEFAULT_CHAT_MODEL) -> None:
        """Initialize the service with a shared OpenAI client."""
        if client is None:
            raise ValueError("OpenAI client is required for companion chat.")
        self.client = client
        self.model = model

    async def complete(self, system_prompt: str, history: List[Dict[str, str]], text: str) -> str:
        """Return the assistant reply for `text` given the prior history.

        Args:
            system_prompt: Persona prompt placed first.
            history: Earlier turns as {"role", "content"} dicts, oldest first.
            text: The learner's new line.
        """
        messages = [{"role": "system", "content": system_prompt}, *history, {"role": "user", "content": text}]
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=300,
                temperature=0.8,
            )
        except Exception as exc:
            logging.error("OpenAI chat completion request failed: %s", exc)
            raise ExternalCapabilityError(f"Completion failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        reply = choices[0].message.content if choices else None
        if not reply:
            raise ExternalCapabilityError("Completion response did not include text.")
        return reply.strip()
