"""Handlebars system prompts for the chat proxy, with localized section labels."""

from collections.abc import Callable
from typing import Any

import pybars


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return compiled(context)
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Section labels ───────────────────────────────────────

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ko": "Korean",
    "ja": "Japanese",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
}

SECTION_LABELS: dict[str, dict[str, str]] = {
    "en": {
        "premise": "PREMISE",
        "victim": "VICTIM",
        "characters": "CHARACTER LIST",
        "suspects": "SUSPECTS",
        "clues": "CLUES",
        "solution": "SOLUTION",
    },
    "ko": {
        "premise": "전제",
        "victim": "피해자",
        "characters": "등장인물 목록",
        "suspects": "용의자",
        "clues": "단서",
        "solution": "해결",
    },
    "ja": {
        "premise": "前提",
        "victim": "被害者",
        "characters": "登場人物一覧",
        "suspects": "容疑者",
        "clues": "手がかり",
        "solution": "解決",
    },
    "zh": {
        "premise": "前提",
        "victim": "受害者",
        "characters": "角色列表",
        "suspects": "嫌疑人",
        "clues": "线索",
        "solution": "真相",
    },
    "es": {
        "premise": "PREMISA",
        "victim": "VÍCTIMA",
        "characters": "LISTA DE PERSONAJES",
        "suspects": "SOSPECHOSOS",
        "clues": "PISTAS",
        "solution": "SOLUCIÓN",
    },
    "fr": {
        "premise": "PRÉMISSE",
        "victim": "VICTIME",
        "characters": "LISTE DES PERSONNAGES",
        "suspects": "SUSPECTS",
        "clues": "INDICES",
        "solution": "SOLUTION",
    },
    "de": {
        "premise": "PRÄMISSE",
        "victim": "OPFER",
        "characters": "CHARAKTERLISTE",
        "suspects": "VERDÄCHTIGE",
        "clues": "HINWEISE",
        "solution": "LÖSUNG",
    },
}


def section_labels(locale: str) -> dict[str, str]:
    """Labels for a locale, falling back to English."""
    return SECTION_LABELS.get(locale, SECTION_LABELS["en"])


# ── Templates ────────────────────────────────────────────

NEW_MYSTERY_PROMPT = """\
You are a helpful murder mystery creator. Your first question should ALWAYS be: \
"How many players do you want for your murder mystery?"

Be conversational and ask only this question first. Do not generate any mystery \
content until you know the player count.

After getting the player count, proceed to ask about theme, then other details \
one at a time before creating the full mystery.\
"""

CREATION_PROMPT = """\
You are a murder mystery creator. Help the user create an engaging murder mystery \
step by step. Ask for details one at a time: theme, setting, victim details, etc. \
Once you have enough information, create a complete mystery outline.\
"""

PLAYER_COUNT_PROMPT = """\
You are a helpful murder mystery creator. Your first question should ALWAYS be: \
"How many players do you want for your murder mystery?"

Be conversational and ask only this question first. Do not generate any mystery \
content until you know the player count.\
"""

LANGUAGE_DIRECTIVE = """\
{{#if translate}}
Respond in {{language}}.
{{/if}}
When presenting a mystery concept, use these section headings:
{{#each headings}}
## {{{this}}}
{{/each}}
"""


def language_directive(locale: str) -> str:
    """Render the trailing instruction that localizes section headings."""
    labels = section_labels(locale)
    context = {
        "translate": locale != "en",
        "language": LANGUAGE_NAMES.get(locale, "English"),
        "headings": [
            labels["premise"],
            labels["victim"],
            labels["characters"],
            labels["clues"],
            labels["solution"],
        ],
    }
    return render_prompt(LANGUAGE_DIRECTIVE, context)
