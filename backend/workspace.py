from __future__ import annotations

import contextlib
import dataclasses
import logging
import threading
import typing as t

from w1h_ai.models import (
    RECOMMENDED_ARTICLES,
    SUGGESTED_KEYWORDS,
    W1H_FIELDS,
    W1H_LABELS,
    AnalysisResult,
    Article,
    Difficulty,
    SavedDocument,
    W1HAnswers,
    display_date,
    normalize_difficulty,
)
from w1h_ai.w1h_ai import W1HAIUtil

from .document_store import DocumentStore

logger = logging.getLogger(__name__)

SAVED_PLACEHOLDER_CONTENT = (
    "저장된 활동지 모드입니다. 원문 내용은 저장 시점의 내용과 다를 수 있어 표시하지 않거나, "
    "검색을 통해 다시 찾아볼 수 있습니다."
)


class WorkspaceError(RuntimeError):
    pass


class WorkspaceBusyError(WorkspaceError):
    pass


class NoArticleSelectedError(WorkspaceError):
    pass


class ArticleNotFoundError(WorkspaceError):
    pass


class DocumentNotFoundError(WorkspaceError):
    pass


class Workspace:
    """State behind the worksheet screen: article list, current worksheet, saved documents."""

    def __init__(
        self,
        *,
        ai: W1HAIUtil,
        store: DocumentStore,
        seed_articles: t.Iterable[Article] = RECOMMENDED_ARTICLES,
        default_keywords: t.Iterable[str] = SUGGESTED_KEYWORDS,
        difficulty: Difficulty = "medium",
    ) -> None:
        self.ai = ai
        self.store = store
        self.articles: list[Article] = list(seed_articles)
        self.selected: Article | None = None
        self.answers = W1HAnswers()
        self.difficulty: Difficulty = normalize_difficulty(difficulty)
        self.keywords: list[str] = list(default_keywords)
        self.busy = False
        self._busy_lock = threading.Lock()

    @contextlib.contextmanager
    def _busy(self, action: str) -> t.Iterator[None]:
        with self._busy_lock:
            if self.busy:
                raise WorkspaceBusyError(f"Another AI request is still running; cannot {action} now.")
            self.busy = True
        try:
            yield
        finally:
            self.busy = False

    def _require_selected(self) -> Article:
        if self.selected is None:
            raise NoArticleSelectedError("No article is selected.")
        return self.selected

    def _unique_id(self, article: Article) -> Article:
        taken = {a.id for a in self.articles}
        if article.id not in taken:
            return article
        n = 2
        while f"{article.id}-{n}" in taken:
            n += 1
        return dataclasses.replace(article, id=f"{article.id}-{n}")

    def find_article(self, article_id: str) -> Article:
        for a in self.articles:
            if a.id == article_id:
                return a
        raise ArticleNotFoundError(f"Article {article_id!r} not found.")

    def set_difficulty(self, value: t.Any) -> Difficulty:
        self.difficulty = normalize_difficulty(value)
        return self.difficulty

    def generate(self, topic: str, difficulty: t.Any = None) -> Article:
        if not topic or not topic.strip():
            raise ValueError("Topic must not be empty.")
        level = self.difficulty if difficulty is None else normalize_difficulty(difficulty)
        with self._busy("generate an article"):
            article = self.ai.generate_article(topic, level)
        article = self._unique_id(article)
        self.articles.insert(0, article)
        self.select_article(article.id)
        return article

    def select_article(self, article_id: str) -> Article:
        article = self.find_article(article_id)
        self.selected = article
        self.answers = W1HAnswers()
        return article

    def clear_articles(self) -> int:
        count = len(self.articles)
        if self.selected is not None and any(a.id == self.selected.id for a in self.articles):
            self.selected = None
        self.articles = []
        return count

    def update_answers(self, values: t.Mapping[str, t.Any]) -> W1HAnswers:
        unknown = [k for k in values if k not in W1H_FIELDS]
        if unknown:
            raise ValueError(f"Unknown 5W1H field(s): {', '.join(unknown)}")
        answers = self.answers
        for field, value in values.items():
            answers = answers.with_field(field, "" if value is None else str(value))
        self.answers = answers
        return answers

    def analyze(self) -> AnalysisResult:
        article = self._require_selected()
        with self._busy("analyze the article"):
            result = self.ai.analyze(article.content, self.difficulty)
        # Ignore the result if the user switched articles meanwhile
        if self.selected is article:
            self.answers = result.answers
        return result

    def refresh_keywords(self) -> list[str]:
        with self._busy("refresh keywords"):
            suggested = self.ai.suggest_keywords()
        if suggested:
            self.keywords = suggested
        return list(self.keywords)

    def save(self) -> SavedDocument:
        article = self._require_selected()
        doc = self.store.new_document(article.title, self.answers)
        return self.store.save(doc)

    def delete_document(self, doc_id: int) -> None:
        if not self.store.delete(doc_id):
            raise DocumentNotFoundError(f"Saved document {doc_id} not found.")

    def load_document(self, doc_id: int) -> SavedDocument:
        doc = self.store.get(doc_id)
        if doc is None:
            raise DocumentNotFoundError(f"Saved document {doc_id} not found.")
        self.selected = Article(
            id=str(doc.id),
            category="저장됨",
            title=doc.article_title,
            content=SAVED_PLACEHOLDER_CONTENT,
            source="내 보관함",
            read_time="-",
        )
        self.answers = W1HAnswers.from_dict(doc.answers.to_dict())
        return doc

    def render_print(self) -> str:
        article = self._require_selected()
        lines = [f"[{article.category}] {article.title}", f"출처: {article.source}", "", article.content, ""]
        lines.append("육하원칙 정리")
        for field in W1H_FIELDS:
            value = getattr(self.answers, field).strip()
            lines.append(f"{W1H_LABELS[field]} ({field.upper()}): {value}")
        lines.extend(["", f"{display_date()} 출력"])
        return "\n".join(lines) + "\n"

    def snapshot(self) -> dict[str, t.Any]:
        return {
            "article": self.selected.to_dict() if self.selected else None,
            "answers": self.answers.to_dict(),
            "difficulty": self.difficulty,
            "busy": self.busy,
        }
