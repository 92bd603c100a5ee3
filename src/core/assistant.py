"""
Espiritualizei — Spiritual Assistant.

Short generative texts shown around the app: chat replies, the daily
Gospel theme, the saint-of-the-day reflection and the spiritual director's
structured answer. Every function returns usable text; any failure yields a
fixed devotional fallback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from src.core.llm import LLMUnavailable, complete, complete_json
from src.core.routine_generator import (
    STRUGGLE_NAMES,
    SAINT_NAMES,
    clean_llm_response,
    clean_output,
)

if TYPE_CHECKING:
    from src.data.models import UserProfile

logger = logging.getLogger(__name__)

FALLBACK_CHAT = "Um momento de oração silenciosa. Em breve voltaremos a conversar."
EMPTY_CHAT = "Deus te abençoe."
FALLBACK_THEME = "Buscai as coisas do alto."
EMPTY_THEME = "Caminhando na luz de Cristo."
FALLBACK_REFLECTION = "A paz de Cristo esteja convosco."
EMPTY_REFLECTION = "O Senhor é o meu pastor."
FALLBACK_DIRECTOR_REFLECTION = "Deus olha para o seu coração com amor."
FALLBACK_DIRECTOR_VERSE = "Salmo 23"

_CHAT_SYSTEM_PROMPT = """\
Você é um assistente católico humilde e acolhedor.
RESPONDA SEMPRE EM PORTUGUÊS DO BRASIL.
Seu tom deve ser de um irmão que caminha junto, nunca autoritário.
Não use negritos ou asteriscos na resposta.
Contexto: {context}
"""

_DIRECTOR_SYSTEM_PROMPT = """\
Você é um irmão na fé que acompanha quem busca direção espiritual.
Responda em português do Brasil com uma breve reflexão e um versículo bíblico relacionado.
"""

DIRECTOR_RESPONSE_SCHEMA: dict = {
    "type": "OBJECT",
    "properties": {
        "reflection": {"type": "STRING", "description": "Breve reflexão espiritual"},
        "verse": {"type": "STRING", "description": "Versículo bíblico relacionado"},
    },
    "required": ["reflection", "verse"],
}


class _DirectorResponse(BaseModel):
    reflection: str
    verse: str


@dataclass
class DirectorReply:
    reflection: str
    verse: str


def _user_context(user: UserProfile | None) -> str:
    if user is None:
        return "Irmão em busca de luz."
    focus = STRUGGLE_NAMES.get((user.spiritual_focus or "").lower(), user.spiritual_focus or "")
    saint = SAINT_NAMES.get((user.patron_saint or "").lower(), user.patron_saint or "")
    return f"Usuário: {user.name}. Luta: {focus or 'não informada'}. Santo: {saint or 'não informado'}."


async def _short_text(prompt: str, system: str, empty: str, fallback: str, max_tokens: int) -> str:
    try:
        text = await complete(system=system, user_message=prompt, max_tokens=max_tokens)
    except LLMUnavailable as exc:
        logger.info("Assistant offline (%s), using fallback text", exc)
        return fallback
    except Exception as exc:
        logger.error("Assistant generation error: %s", exc)
        return fallback
    return clean_output(text) or empty


async def generate_text(prompt: str, user: UserProfile | None = None) -> str:
    """Chat reply to the user's message, personalized when a profile is given."""
    return await _short_text(
        prompt,
        system=_CHAT_SYSTEM_PROMPT.format(context=_user_context(user)),
        empty=EMPTY_CHAT,
        fallback=FALLBACK_CHAT,
        max_tokens=512,
    )


async def generate_daily_theme(gospel_text: str) -> str:
    """One short poetic line (at most ~10 words) summarizing the day's Gospel."""
    prompt = (
        "Resuma este Evangelho em uma frase curta e poética "
        f"(max 10 palavras) em Português: {gospel_text}"
    )
    return await _short_text(prompt, system="", empty=EMPTY_THEME, fallback=FALLBACK_THEME, max_tokens=64)


async def generate_daily_reflection(saint: str) -> str:
    prompt = f"Gere uma frase católica inspirada em {saint}. Max 20 palavras."
    return await _short_text(
        prompt, system="", empty=EMPTY_REFLECTION, fallback=FALLBACK_REFLECTION, max_tokens=96,
    )


async def ask_spiritual_director(message: str) -> DirectorReply:
    """Structured answer {reflection, verse}; fallback on any failure."""
    fallback = DirectorReply(FALLBACK_DIRECTOR_REFLECTION, FALLBACK_DIRECTOR_VERSE)
    try:
        raw_text = await complete_json(
            system=_DIRECTOR_SYSTEM_PROMPT,
            user_message=message,
            json_schema=DIRECTOR_RESPONSE_SCHEMA,
            max_tokens=512,
        )
        parsed = _DirectorResponse.model_validate_json(clean_llm_response(raw_text or ""))
    except LLMUnavailable as exc:
        logger.info("Spiritual director offline (%s), using fallback", exc)
        return fallback
    except ValidationError as exc:
        logger.error("Malformed director response: %s", exc)
        return fallback
    except Exception as exc:
        logger.error("Spiritual director error: %s", exc)
        return fallback

    return DirectorReply(
        reflection=clean_output(parsed.reflection) or fallback.reflection,
        verse=clean_output(parsed.verse) or fallback.verse,
    )
