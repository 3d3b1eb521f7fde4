"""Prompt templates for the two requests made per submission.

Each submission produces a "story" prompt (a short fictional narrative about
the persona's daily life) and a "list" prompt (dash-bulleted historical facts
about the year and city). Templates exist for English and Arabic.
"""

from __future__ import annotations

from timeline.models import Kind, Locale, Persona

_STORY_EN = (
    "Write a 300-word fictional story about {name}, a {age}-year-old {sex} living in "
    "{city}, Palestine in {year}. The story must focus on their personal daily life, "
    "challenges, and cultural experiences as an individual. Do NOT generate a bulleted "
    "list, historical facts, or any introductory remarks like \"Here's the story\" or "
    "\"Okay\"; start directly with the narrative text and provide only the story."
)

_STORY_AR = (
    "اكتب قصة قصيرة خيالية (حوالي 300 كلمة) عن {name}، {age} عامًا، {sex} يعيش في "
    "{city}، فلسطين في عام {year}. ركز على حياتهم اليومية الشخصية، التحديات، والتجارب "
    "الثقافية كفرد. لا تتضمن حقائق تاريخية أو قوائم أو أي مقدمة/خاتمة؛ ابدأ مباشرة بالقصة."
)

_LIST_EN = (
    "Provide a concise historical context about Palestine in {year}, specifically around "
    "{city}. Return only a bulleted list of 5-7 key historical facts, each starting with "
    "a dash (-). Do not include any narrative, story, or additional text beyond the list."
)

_LIST_AR = (
    "قدم سياقًا تاريخيًا موجزًا عن فلسطين في عام {year}، وتحديدًا حول {city}. أعد فقط "
    "قائمة منقطة من 5-7 حقائق تاريخية رئيسية باللغة العربية، كل منها يبدأ بشرطة (-). "
    "لا تتضمن أي نصوص إضافية أو عناوين أو شروحات خارج القائمة، وتأكد من أن الرد باللغة "
    "العربية فقط."
)

_TEMPLATES: dict[tuple[Locale, Kind], str] = {
    ("en", "story"): _STORY_EN,
    ("ar", "story"): _STORY_AR,
    ("en", "list"): _LIST_EN,
    ("ar", "list"): _LIST_AR,
}

_SEX_AR = {"male": "رجل", "female": "امرأة"}


def build_prompt(persona: Persona, locale: Locale, kind: Kind) -> str:
    """Render the prompt for one request. Pure function of its inputs."""
    template = _TEMPLATES[(locale, kind)]
    sex = _SEX_AR[persona.sex] if locale == "ar" else persona.sex
    return template.format(
        name=persona.name,
        age=persona.age,
        sex=sex,
        city=persona.city,
        year=persona.year,
    )


def system_instruction(locale: Locale, kind: Kind) -> str:
    """The leading system turn: response language plus kind constraint."""
    language = "Respond only in Arabic" if locale == "ar" else "Respond only in English"
    if kind == "story":
        return f"{language} with a fictional narrative story. Do not generate lists or introductory remarks."
    return f"{language} with a bulleted list of facts. Do not generate stories or additional text."
