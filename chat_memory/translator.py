"""Translator: render the user's text as natural spoken Korean in a persona's register."""

from __future__ import annotations

import logging

from .personas import DEFAULT_TRANSLATION_STYLE, Persona
from .types import (
    ChatMessage,
    CompletionError,
    CompletionGateway,
    CompletionRequest,
    InvalidTurnError,
    ServiceError,
    TranslationConfig,
)

logger = logging.getLogger(__name__)

TRANSLATION_SYSTEM_PROMPT = """\
You are a Korean translation expert. Translate the given text to natural conversational Korean.

Translation style: {style}

Guidelines:
- Translate to natural, spoken Korean (not written/formal Korean unless specified)
- Use appropriate speech level based on the relationship
- Keep the tone and emotion of the original text
- Make it sound like something a Korean speaker would actually say
- Output ONLY the translated Korean text, no explanations"""


def translation_style(persona_id: str | None) -> str:
    """Speech style for a persona id; unknown or missing ids get the neutral style."""
    if not persona_id:
        return DEFAULT_TRANSLATION_STYLE
    try:
        return Persona(persona_id).translation_style
    except ValueError:
        return DEFAULT_TRANSLATION_STYLE


class Translator:
    """Stateless: translation never reads or writes conversation memory."""

    def __init__(self, gateway: CompletionGateway, config: TranslationConfig | None = None) -> None:
        self.gateway = gateway
        self.config = config or TranslationConfig()

    def translate(self, text: str, persona_id: str | None = None) -> str:
        if not text:
            raise InvalidTurnError("Missing required field: text")

        style = translation_style(persona_id)
        request = CompletionRequest(
            model=self.config.model,
            messages=[
                ChatMessage(role="system", content=TRANSLATION_SYSTEM_PROMPT.format(style=style)),
                ChatMessage(role="user", content=text),
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        try:
            translated = self.gateway.complete(request)
        except CompletionError as e:
            logger.error(f"Translation completion failed: {e}")
            status = e.status_code if e.status_code is not None else "transport error"
            raise ServiceError(
                f"Translation API request failed: {status}", status_code=e.status_code,
            ) from e

        # Empty output falls back to the source text
        return (translated or "").strip() or text
