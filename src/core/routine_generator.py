"""
Espiritualizei — Routine Generator.

Turns onboarding answers into a personalized spiritual routine using the
configured LLM, with the response constrained to a fixed JSON schema and
validated by pydantic.

The caller never sees a failure: an unconfigured provider, a transport
error, malformed JSON, a schema violation or an empty routine all yield the
fixed three-item fallback routine.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from src.core.llm import LLMUnavailable, complete_json
from src.data.models import (
    ALL_DAYS,
    OnboardingData,
    RoutineAction,
    RoutineIcon,
    RoutineItem,
    TimeOfDay,
)
from src.data.profile_codec import DEFAULT_XP_REWARD, coerce_enum, normalize_days

logger = logging.getLogger(__name__)


class GenerationMalformed(ValueError):
    """The provider answered, but not with a usable routine. Never surfaced."""


# ---------------------------------------------------------------------------
# Response contract
# ---------------------------------------------------------------------------


class GeneratedRoutineItem(BaseModel):
    """One routine entry as emitted by the model.

    JSON example:
    {
        "title": "Terço",
        "description": "Rezar um mistério",
        "xpReward": 30,
        "icon": "rosary",
        "timeOfDay": "night",
        "dayOfWeek": [0, 3, 6],
        "actionLink": "NONE"
    }
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    description: str
    xp_reward: float
    icon: str
    time_of_day: str
    day_of_week: list[int]
    action_link: str | None = None


class GenerationResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    profile_description: str
    profile_reasoning: str
    routine: list[GeneratedRoutineItem]


# Schema sent to the provider (OpenAPI subset understood by Gemini)
ROUTINE_RESPONSE_SCHEMA: dict = {
    "type": "OBJECT",
    "properties": {
        "profileDescription": {"type": "STRING"},
        "profileReasoning": {"type": "STRING"},
        "routine": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "xpReward": {"type": "NUMBER"},
                    "icon": {
                        "type": "STRING",
                        "description": ", ".join(i.value for i in RoutineIcon),
                    },
                    "timeOfDay": {"type": "STRING", "description": "morning, afternoon, night"},
                    "dayOfWeek": {"type": "ARRAY", "items": {"type": "INTEGER"}},
                    "actionLink": {
                        "type": "STRING",
                        "description": ", ".join(a.value for a in RoutineAction),
                    },
                },
                "required": ["title", "description", "xpReward", "icon", "timeOfDay", "dayOfWeek"],
            },
        },
    },
    "required": ["profileDescription", "profileReasoning", "routine"],
}


@dataclass
class GeneratedRoutine:
    routine: list[RoutineItem]
    profile_description: str
    profile_reasoning: str
    used_fallback: bool = False


# ---------------------------------------------------------------------------
# Fallback content
# ---------------------------------------------------------------------------

FALLBACK_DESCRIPTION = "Buscador de Deus"
FALLBACK_REASONING = "Um caminho de paz e constância para sua jornada."

_FALLBACK_ITEMS: tuple[dict, ...] = (
    {
        "title": "Oração da Manhã",
        "description": "Entregar o dia ao Senhor",
        "xp_reward": 20,
        "icon": RoutineIcon.SUN,
        "time_of_day": TimeOfDay.MORNING,
        "action_link": RoutineAction.NONE,
    },
    {
        "title": "Evangelho do Dia",
        "description": "Escutar a voz de Jesus",
        "xp_reward": 30,
        "icon": RoutineIcon.BOOK,
        "time_of_day": TimeOfDay.MORNING,
        "action_link": RoutineAction.READ_LITURGY,
    },
    {
        "title": "Exame de Consciência",
        "description": "Revisar o dia com gratidão",
        "xp_reward": 20,
        "icon": RoutineIcon.MOON,
        "time_of_day": TimeOfDay.NIGHT,
        "action_link": RoutineAction.NONE,
    },
)


def _new_item_id() -> str:
    return str(uuid.uuid4())


def fallback_routine() -> GeneratedRoutine:
    """The deterministic routine used whenever generation is not usable."""
    items = [
        RoutineItem(id=_new_item_id(), completed=False, day_of_week=list(ALL_DAYS), **entry)
        for entry in _FALLBACK_ITEMS
    ]
    return GeneratedRoutine(
        routine=items,
        profile_description=FALLBACK_DESCRIPTION,
        profile_reasoning=FALLBACK_REASONING,
        used_fallback=True,
    )


# ---------------------------------------------------------------------------
# Text cleaning
# ---------------------------------------------------------------------------

_EMPHASIS_RE = re.compile(r"\*\*|__|[*_#`]")
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def clean_output(text: str | None) -> str:
    """Strip markdown emphasis characters (** __ * _ # `) and surrounding whitespace."""
    if not text:
        return ""
    return _EMPHASIS_RE.sub("", text).strip()


def clean_llm_response(raw_text: str) -> str:
    """Remove markdown code fences some providers wrap around JSON."""
    return _FENCE_RE.sub("", raw_text.strip()).strip()


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
Você é um diretor espiritual católico, humilde e acolhedor.
Monte rotinas espirituais simples, realistas e progressivas.
RESPONDA SEMPRE EM PORTUGUÊS DO BRASIL.
Não use negritos, asteriscos ou qualquer marcação markdown nos textos.
"""

_ROUTINE_PROMPT = """\
Crie um caminho de fé simples para {name}.
- Estado de vida: {state_of_life}
- Luta principal: {primary_struggle}
- Objetivo espiritual: {spiritual_goal}
- Guia: {patron_saint}

Entre 3 e 6 práticas. xpReward entre 10 e 50.
icon: um de {icons}.
timeOfDay: morning, afternoon ou night.
dayOfWeek: dias da semana de 0 (domingo) a 6 (sábado).
actionLink: READ_LITURGY para leitura do Evangelho, OPEN_MAP para ir à igreja, senão NONE.

RETORNE APENAS JSON.
"""


# Onboarding answer codes → names the model understands
SAINT_NAMES: dict[str, str] = {
    "acutis": "Beato Carlo Acutis",
    "michael": "São Miguel Arcanjo",
    "therese": "Santa Teresinha",
    "joseph": "São José",
    "mary": "Virgem Maria",
}

STRUGGLE_NAMES: dict[str, str] = {
    "anxiety": "Ansiedade",
    "laziness": "Procrastinação",
    "dryness": "Aridez",
    "lust": "Vícios",
    "ignorance": "Dúvida",
    "pride": "Soberba",
    "anger": "Ira",
}


def build_prompt(data: OnboardingData) -> str:
    saint = data.patron_saint.strip()
    struggle = data.primary_struggle.strip()
    return _ROUTINE_PROMPT.format(
        name=data.name.strip() or "o peregrino",
        state_of_life=data.state_of_life or "não informado",
        primary_struggle=STRUGGLE_NAMES.get(struggle.lower(), struggle) or "não informada",
        spiritual_goal=data.spiritual_goal or "crescer na fé",
        patron_saint=SAINT_NAMES.get(saint.lower(), saint) or "Virgem Maria",
        icons=", ".join(i.value for i in RoutineIcon),
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _to_routine_item(generated: GeneratedRoutineItem) -> RoutineItem:
    """Build a RoutineItem with a fresh id; the model never chooses ids or status."""
    reward = int(round(generated.xp_reward))
    return RoutineItem(
        id=_new_item_id(),
        title=clean_output(generated.title),
        description=clean_output(generated.description),
        xp_reward=reward if reward > 0 else DEFAULT_XP_REWARD,
        completed=False,
        icon=coerce_enum(RoutineIcon, generated.icon, RoutineIcon.BOOK),
        time_of_day=coerce_enum(TimeOfDay, generated.time_of_day, TimeOfDay.ANY),
        day_of_week=normalize_days(generated.day_of_week),
        action_link=coerce_enum(RoutineAction, generated.action_link, RoutineAction.NONE),
    )


def parse_generation(raw_text: str) -> GeneratedRoutine:
    """Validate a provider response. Raises GenerationMalformed."""
    cleaned = clean_llm_response(raw_text or "")
    if not cleaned:
        raise GenerationMalformed("empty response")
    try:
        parsed = GenerationResponse.model_validate_json(cleaned)
    except ValidationError as exc:
        raise GenerationMalformed(f"response does not match schema: {exc}") from exc

    items = [_to_routine_item(g) for g in parsed.routine]
    items = [i for i in items if i.title]
    if not items:
        raise GenerationMalformed("routine is empty")

    return GeneratedRoutine(
        routine=items,
        profile_description=clean_output(parsed.profile_description) or FALLBACK_DESCRIPTION,
        profile_reasoning=clean_output(parsed.profile_reasoning) or FALLBACK_REASONING,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def generate_routine(data: OnboardingData) -> GeneratedRoutine:
    """Generate a routine for the onboarding answers. Never raises."""
    try:
        raw_text = await complete_json(
            system=_SYSTEM_PROMPT,
            user_message=build_prompt(data),
            json_schema=ROUTINE_RESPONSE_SCHEMA,
            max_tokens=2048,
        )
        logger.debug("LLM routine response: %s", raw_text)
        result = parse_generation(raw_text)
        logger.info("Generated routine with %d items", len(result.routine))
        return result
    except LLMUnavailable as exc:
        logger.warning("Routine generation offline (%s), using fallback routine", exc)
    except GenerationMalformed as exc:
        logger.error("Malformed routine from LLM, using fallback: %s", exc)
    except Exception as exc:
        logger.error("AI routine generation error, using fallback: %s", exc)
    return fallback_routine()
