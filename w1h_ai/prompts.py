from __future__ import annotations

import dataclasses
import typing as t

from .models import UNKNOWN, Difficulty, normalize_difficulty

TaskKind = t.Literal["article", "analysis", "keywords"]

# Request-size guard for analysis prompts.
MAX_ANALYSIS_CHARS = 5000

NO_LIST_SUMMARY_RULE = (
    "**절대로** '언제: O월 O일', '장소: OO' 처럼 정보를 요약하거나 나열하지 마세요."
)


@dataclasses.dataclass(frozen=True)
class DifficultyProfile:
    audience: str
    writing_style: str
    min_chars: int
    max_chars: int
    answer_style: str
    read_time_label: str

    @property
    def length_band(self) -> str:
        return f"{self.min_chars}~{self.max_chars}자"


DIFFICULTY_PROFILES: dict[str, DifficultyProfile] = {
    "easy": DifficultyProfile(
        audience="초등학교 저학년(1~3학년)",
        writing_style="아주 쉬운 어휘, 짧은 문장, 친근한 동화체",
        min_chars=300,
        max_chars=500,
        answer_style="초등학교 저학년이 이해하기 쉬운 짧은 1문장",
        read_time_label="쉬움",
    ),
    "medium": DifficultyProfile(
        audience="초등학교 고학년",
        writing_style="명확한 문장 구조와 표준적인 어휘",
        min_chars=500,
        max_chars=800,
        answer_style="초등학교 고학년이 이해하기 쉬운 1~2문장",
        read_time_label="보통",
    ),
    "hard": DifficultyProfile(
        audience="중학생",
        writing_style="논리적인 전개, 구체적인 설명, 다소 심화된 어휘 사용",
        min_chars=800,
        max_chars=1200,
        answer_style="중학생 수준의 구체적인 1~2문장",
        read_time_label="어려움",
    ),
}


def profile_for(difficulty: Difficulty | str) -> DifficultyProfile:
    return DIFFICULTY_PROFILES[normalize_difficulty(difficulty)]


def build_article_prompt(topic: str, difficulty: Difficulty | str = "medium") -> str:
    p = profile_for(difficulty)
    return f"""
'{topic.strip()}'에 대해 {p.audience} 학생들이 읽고 육하원칙(누가, 언제, 어디서, 무엇을, 어떻게, 왜)을 분석하기 좋은 교육용 지문을 작성해주세요.

[작성 가이드]
1. 대상 독자 및 난이도: {p.audience} 수준. ({p.writing_style})
2. 구성 방식 (핵심):
   - {NO_LIST_SUMMARY_RULE}
   - 사건이 일어난 순서나 인과 관계에 따라 자연스러운 줄글(이야기) 형태로 서술하세요.
   - 학생이 글을 꼼꼼히 읽어야만 육하원칙 요소를 발견할 수 있도록 문맥 속에 정보를 자연스럽게 녹여내세요.
3. 내용 보강: 원문의 정보가 빈약하다면 사실관계를 해치지 않는 선에서 상황을 이해할 수 있는 배경 설명이나 묘사를 1~2문장 추가하세요.
4. 어조: 친절하고 차분한 설명조('~합니다/했습니다')를 유지하세요.
5. 형식:
   - title: 주제를 잘 나타내는 매력적인 제목
   - category: 주제에 맞는 적절한 분야 (예: 역사, 과학, 사회, 인물 등)
   - content: 본문, 분량은 {p.length_band} 내외

응답은 title, category, content 세 필드를 가진 JSON 객체로만 반환하세요. Markdown 코드 블록은 사용하지 마세요.
""".strip()


def build_analysis_prompt(article_text: str, difficulty: Difficulty | str = "medium") -> str:
    p = profile_for(difficulty)
    text = article_text[:MAX_ANALYSIS_CHARS]
    return f"""
다음 텍스트를 분석하여 육하원칙(누가, 언제, 어디서, 무엇을, 어떻게, 왜)에 해당하는 내용을 추출하세요.

[요구사항]
1. 'answers': 각 항목(who, when, where, what, how, why)에 대한 요약 답변을 한국어로 작성하세요. {p.answer_style}으로 작성하세요.
2. 'quotes': 'answers'를 도출하는 데 결정적인 근거가 된 본문의 문구(단어 또는 문장 일부)를 그대로 발췌하여 리스트로 만드세요.
   - 본문에 있는 텍스트와 **정확히 일치**해야 하이라이팅이 가능합니다.
   - 근거가 여러 군데라면 여러 개를 담으세요.
3. 명시되지 않은 정보는 문맥을 통해 합리적으로 추론하거나, 전혀 알 수 없는 경우 '{UNKNOWN}'으로 표시하고 quotes는 빈 배열로 두세요.
4. 여섯 항목은 answers와 quotes 모두에 빠짐없이 포함하세요.

분석할 텍스트:
{text}
""".strip()


def build_keyword_prompt() -> str:
    return """
초등학생이 탐구 학습 주제로 삼기 좋은 흥미로운 검색 키워드 정확히 6가지를 추천해주세요.
역사, 과학, 사회, 시사, 인물 등 다양한 분야에서 랜덤하게 선정하여 매번 새로운 느낌을 주도록 하세요.
너무 뻔한 단어보다는 호기심을 자극하는 구체적인 소재가 좋습니다. 각 키워드는 짧은 단어나 구로 작성하세요.

결과는 오직 JSON 문자열 배열 포맷(["키워드1", "키워드2", ...])으로만 출력하세요.
""".strip()


def build_prompt(task: TaskKind, *, text: str = "", difficulty: Difficulty | str = "medium") -> str:
    """Build the instruction for ``task``.

    ``text`` is the topic for article generation and the article body for
    analysis; keyword suggestion ignores both arguments.
    """
    if task == "article":
        return build_article_prompt(text, difficulty)
    if task == "analysis":
        return build_analysis_prompt(text, difficulty)
    if task == "keywords":
        return build_keyword_prompt()
    raise ValueError(f"Unknown prompt task {task!r}.")
