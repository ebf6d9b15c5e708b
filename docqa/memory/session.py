"""Conversation memory for the interactive chat command.

A ChatSession holds the ordered message history of one conversation and
is passed explicitly into every request.
"""
import uuid
from typing import Dict, List, Optional

import structlog

from docqa import config
from docqa.llm_client import OpenAIClient

logger = structlog.get_logger()

EMPTY_REPLY = "(empty)"


class ChatSession:
    """Ordered message history for one multi-turn conversation."""

    def __init__(
        self,
        system_prompt: Optional[str] = None,
        model: str = None,
        temperature: float = None,
    ):
        """Initialize the session.

        Args:
            system_prompt: Optional system message sent ahead of the history
            model: Chat model name (default from config)
            temperature: Sampling temperature (default from config)
        """
        self.session_id = str(uuid.uuid4())
        self.system_prompt = (system_prompt or "").strip() or None
        self.model = model or config.CHAT_MODEL
        self.temperature = config.CHAT_TEMPERATURE if temperature is None else temperature
        self.history: List[Dict[str, str]] = []

    def build_messages(self, user_text: str) -> List[Dict[str, str]]:
        """Messages for the next request: system, history, then the new turn."""
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.extend(self.history)
        messages.append({"role": "user", "content": user_text})
        return messages

    def record_turn(self, user_text: str, reply: str) -> None:
        self.history.append({"role": "user", "content": user_text})
        self.history.append({"role": "assistant", "content": reply})

    async def send(self, client: OpenAIClient, user_text: str) -> str:
        """Send a user message and record the exchange.

        History is only extended after a successful reply, so a failed
        request can be retried without duplicating the user turn.

        Args:
            client: API client to send the request with
            user_text: The user's message

        Returns:
            The assistant reply, or "(empty)" if the completion was empty

        Raises:
            AnswerServiceError: If the chat completion fails
        """
        reply = await client.chat(
            self.build_messages(user_text),
            model=self.model,
            temperature=self.temperature,
        )
        self.record_turn(user_text, reply)

        logger.info(
            "chat_turn_recorded",
            session_id=self.session_id,
            message_count=len(self.history),
        )

        return reply or EMPTY_REPLY

    def reset(self) -> None:
        """Forget all turns; the system prompt is kept."""
        self.history.clear()
        logger.info("chat_session_reset", session_id=self.session_id)

    def transcript(self) -> str:
        """Plain-text rendering of the conversation, one block per message."""
        lines = []
        for message in self.history:
            lines.append(f"{message['role']}: {message['content'] or EMPTY_REPLY}")
        return "\n\n".join(lines)
