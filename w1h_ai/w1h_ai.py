from __future__ import annotations

import logging
import time
import typing as t

from . import prompts
from .errors import W1HAIError
from .gemini_client import GeminiClient
from .models import (
    UNKNOWN,
    W1H_FIELDS,
    AnalysisResult,
    Article,
    Difficulty,
    JsonDict,
    W1HAnswers,
    normalize_difficulty,
)
from .response_parser import parse_analysis_payload, parse_article_payload, parse_keyword_payload

logger = logging.getLogger(__name__)

GENERATED_SOURCE = "AI 생성 활동지"
GENERATED_KEYWORD = "AI작문"

ARTICLE_SCHEMA: JsonDict = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "category": {"type": "STRING"},
        "content": {"type": "STRING"},
    },
    "required": ["title", "category", "content"],
}

ANALYSIS_SCHEMA: JsonDict = {
    "type": "OBJECT",
    "properties": {
        "answers": {
            "type": "OBJECT",
            "properties": {f: {"type": "STRING"} for f in W1H_FIELDS},
            "required": list(W1H_FIELDS),
        },
        "quotes": {
            "type": "OBJECT",
            "properties": {f: {"type": "ARRAY", "items": {"type": "STRING"}} for f in W1H_FIELDS},
            "required": list(W1H_FIELDS),
        },
    },
    "required": ["answers", "quotes"],
}

KEYWORD_SCHEMA: JsonDict = {
    "type": "ARRAY",
    "items": {"type": "STRING"},
}

KEYWORD_COUNT = 6


def clean_quotes(article_text: str, answer: str, quotes: t.Iterable[str]) -> tuple[str, ...]:
    """Keep only quotes that occur verbatim in ``article_text``.

    An answer equal to the unknown sentinel never carries quotes.
    """
    if answer == UNKNOWN:
        return ()
    out: list[str] = []
    for q in quotes:
        s = q.strip()
        if not s or s in out:
            continue
        if s not in article_text:
            logger.debug("Dropping quote not found in article: %r", s)
            continue
        out.append(s)
    return tuple(out)


class W1HAIUtil:
    def __init__(self, *, gemini: GeminiClient | None = None) -> None:
        self.gemini = gemini or GeminiClient()

    def _new_article_id(self) -> str:
        return f"gen_{int(time.time() * 1000)}"

    def generate_article(self, topic: str, difficulty: Difficulty | str = "medium") -> Article:
        level = normalize_difficulty(difficulty)
        topic = topic.strip()
        if not topic:
            raise ValueError("Topic must not be empty.")

        prompt = prompts.build_prompt("article", text=topic, difficulty=level)
        try:
            raw = self.gemini.generate_text(prompt=prompt, response_schema=ARTICLE_SCHEMA)
            data = parse_article_payload(raw)
        except W1HAIError as e:
            logger.error("Article generation failed for topic %r: %s", topic, e)
            raise

        keywords = [topic]
        if GENERATED_KEYWORD != topic:
            keywords.append(GENERATED_KEYWORD)
        article = Article(
            id=self._new_article_id(),
            category=data["category"],
            title=data["title"],
            content=data["content"],
            source=GENERATED_SOURCE,
            read_time=prompts.profile_for(level).read_time_label,
            keywords=tuple(keywords),
        )
        logger.info("Generated article %s (%d chars) for topic %r", article.id, len(article.content), topic)
        return article

    def analyze(self, article_text: str, difficulty: Difficulty | str = "medium") -> AnalysisResult:
        level = normalize_difficulty(difficulty)
        if not article_text.strip():
            raise ValueError("Article text must not be empty.")

        prompt = prompts.build_prompt("analysis", text=article_text, difficulty=level)
        try:
            raw = self.gemini.generate_text(prompt=prompt, response_schema=ANALYSIS_SCHEMA, temperature=0.2)
            answers, quotes = parse_analysis_payload(raw)
        except W1HAIError as e:
            logger.error("Article analysis failed: %s", e)
            raise

        return AnalysisResult(
            answers=W1HAnswers.from_dict(answers),
            quotes={f: clean_quotes(article_text, answers[f], quotes[f]) for f in W1H_FIELDS},
        )

    def suggest_keywords(self) -> list[str]:
        """Ask for fresh topic keywords. Never raises; returns [] on any failure."""
        try:
            raw = self.gemini.generate_text(
                prompt=prompts.build_prompt("keywords"),
                response_schema=KEYWORD_SCHEMA,
                temperature=1.0,
            )
            return parse_keyword_payload(raw)[:KEYWORD_COUNT]
        except Exception as e:
            logger.warning("Keyword suggestion failed: %s", e)
            return []
