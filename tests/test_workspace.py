import json
import threading
import unittest
from unittest.mock import MagicMock

from backend.document_store import DocumentStore, MemoryStorage
from backend.workspace import (
    ArticleNotFoundError,
    DocumentNotFoundError,
    NoArticleSelectedError,
    Workspace,
    WorkspaceBusyError,
)
from w1h_ai.errors import ServiceError
from w1h_ai.models import RECOMMENDED_ARTICLES, SUGGESTED_KEYWORDS, UNKNOWN, W1H_FIELDS, Article, W1HAnswers
from w1h_ai.w1h_ai import W1HAIUtil

from w1h_fixtures import YI_SUN_SIN_ANALYSIS, YI_SUN_SIN_ARTICLE, fenced


def _article(article_id: str, title: str = "제목") -> Article:
    return Article(id=article_id, category="과학", title=title, content="본문", source="테스트")


class TestWorkspace(unittest.TestCase):
    def setUp(self):
        self.ai = MagicMock()
        self.storage = MemoryStorage()
        self.store = DocumentStore(self.storage)
        self.store.load()
        self.ws = Workspace(ai=self.ai, store=self.store)

    def test_starts_with_seed_articles(self):
        self.assertEqual(self.ws.articles, list(RECOMMENDED_ARTICLES))
        self.assertEqual(self.ws.keywords, list(SUGGESTED_KEYWORDS))
        self.assertIsNone(self.ws.selected)
        self.assertEqual(self.ws.difficulty, "medium")

    def test_select_resets_answers(self):
        self.ws.select_article("rec_1")
        self.ws.update_answers({"who": "제임스 웹"})
        self.ws.select_article("rec_2")
        self.assertEqual(self.ws.answers, W1HAnswers())
        with self.assertRaises(ArticleNotFoundError):
            self.ws.select_article("missing")

    def test_generate_prepends_and_selects(self):
        self.ai.generate_article.return_value = _article("gen_1")
        article = self.ws.generate("공룡", "hard")
        self.ai.generate_article.assert_called_once_with("공룡", "hard")
        self.assertEqual(self.ws.articles[0], article)
        self.assertEqual(self.ws.selected, article)
        self.assertFalse(self.ws.busy)

    def test_generate_uses_workspace_difficulty(self):
        self.ws.set_difficulty("easy")
        self.ai.generate_article.return_value = _article("gen_1")
        self.ws.generate("공룡")
        self.ai.generate_article.assert_called_once_with("공룡", "easy")

    def test_generated_ids_stay_unique(self):
        self.ai.generate_article.return_value = _article("gen_1")
        self.ws.generate("공룡")
        second = self.ws.generate("공룡")
        third = self.ws.generate("공룡")
        self.assertEqual(second.id, "gen_1-2")
        self.assertEqual(third.id, "gen_1-3")
        ids = [a.id for a in self.ws.articles]
        self.assertEqual(len(ids), len(set(ids)))

    def test_failed_generation_commits_nothing(self):
        self.ws.select_article("rec_1")
        self.ai.generate_article.side_effect = ServiceError("down")
        with self.assertRaises(ServiceError):
            self.ws.generate("공룡")
        self.assertEqual(self.ws.articles, list(RECOMMENDED_ARTICLES))
        self.assertEqual(self.ws.selected.id, "rec_1")
        self.assertFalse(self.ws.busy)

    def test_blank_topic(self):
        with self.assertRaises(ValueError):
            self.ws.generate("  ")
        self.ai.generate_article.assert_not_called()

    def test_busy_rejects_reentrant_ai_actions(self):
        self.ws.select_article("rec_1")
        self.ws.busy = True
        with self.assertRaises(WorkspaceBusyError):
            self.ws.generate("공룡")
        with self.assertRaises(WorkspaceBusyError):
            self.ws.analyze()
        with self.assertRaises(WorkspaceBusyError):
            self.ws.refresh_keywords()
        self.ai.generate_article.assert_not_called()
        self.ai.analyze.assert_not_called()

    def test_busy_across_threads(self):
        started = threading.Event()
        release = threading.Event()

        def slow_generate(topic, level):
            started.set()
            release.wait(5)
            return Article(id="gen_1", category="과학", title="공룡", content="공룡 이야기", source="AI")

        self.ai.generate_article.side_effect = slow_generate
        worker = threading.Thread(target=self.ws.generate, args=("공룡",))
        worker.start()
        self.assertTrue(started.wait(5))
        try:
            with self.assertRaises(WorkspaceBusyError):
                self.ws.generate("화산")
        finally:
            release.set()
            worker.join(5)
        self.assertFalse(self.ws.busy)
        self.assertEqual(self.ai.generate_article.call_count, 1)
        self.assertEqual(self.ws.selected.id, "gen_1")

    def test_update_answers(self):
        self.ws.update_answers({"who": "세종대왕", "when": 1443})
        self.assertEqual(self.ws.answers.who, "세종대왕")
        self.assertEqual(self.ws.answers.when, "1443")
        with self.assertRaises(ValueError):
            self.ws.update_answers({"whom": "x"})

    def test_set_difficulty_rejects_unknown(self):
        with self.assertRaises(ValueError):
            self.ws.set_difficulty("impossible")
        self.assertEqual(self.ws.difficulty, "medium")

    def test_analyze_requires_article(self):
        with self.assertRaises(NoArticleSelectedError):
            self.ws.analyze()

    def test_analyze_replaces_answers(self):
        real_ai = W1HAIUtil(gemini=MagicMock())
        real_ai.gemini.generate_text.return_value = fenced(YI_SUN_SIN_ANALYSIS)
        ws = Workspace(ai=real_ai, store=self.store, seed_articles=[_article("a", "이순신")])
        ws.select_article("a")
        ws.update_answers({"who": "내가 쓴 답"})
        ws.analyze()
        self.assertEqual(ws.answers.who, YI_SUN_SIN_ANALYSIS["answers"]["who"])

    def test_save_is_a_snapshot(self):
        self.ws.select_article("rec_2")
        self.ws.update_answers({"who": "세종대왕"})
        doc = self.ws.save()
        self.ws.update_answers({"who": "집현전 학자"})

        self.assertEqual(doc.answers.who, "세종대왕")
        self.assertEqual(self.store.documents[0].answers.who, "세종대왕")
        self.assertEqual(doc.article_title, RECOMMENDED_ARTICLES[1].title)
        self.assertEqual(json.loads(self.storage.payload)[0]["answers"]["who"], "세종대왕")

    def test_save_requires_article(self):
        with self.assertRaises(NoArticleSelectedError):
            self.ws.save()

    def test_load_and_delete_document(self):
        self.ws.select_article("rec_1")
        self.ws.update_answers({"where": "우주"})
        doc = self.ws.save()
        self.ws.select_article("rec_2")

        self.ws.load_document(doc.id)
        self.assertEqual(self.ws.selected.id, str(doc.id))
        self.assertEqual(self.ws.selected.source, "내 보관함")
        self.assertEqual(self.ws.answers.where, "우주")

        self.ws.delete_document(doc.id)
        self.assertEqual(self.store.documents, [])
        with self.assertRaises(DocumentNotFoundError):
            self.ws.delete_document(doc.id)
        with self.assertRaises(DocumentNotFoundError):
            self.ws.load_document(doc.id)

    def test_clear_articles_deselects_but_keeps_answers(self):
        self.ws.select_article("rec_1")
        self.ws.update_answers({"who": "x"})
        self.assertEqual(self.ws.clear_articles(), 2)
        self.assertEqual(self.ws.articles, [])
        self.assertIsNone(self.ws.selected)
        self.assertEqual(self.ws.answers, W1HAnswers(who="x"))

    def test_clear_articles_keeps_loaded_document(self):
        self.ws.select_article("rec_1")
        doc = self.ws.save()
        self.ws.load_document(doc.id)
        self.ws.clear_articles()
        self.assertEqual(self.ws.selected.id, str(doc.id))

    def test_refresh_keywords(self):
        self.ai.suggest_keywords.return_value = ["화산", "꿀벌"]
        self.assertEqual(self.ws.refresh_keywords(), ["화산", "꿀벌"])
        self.ai.suggest_keywords.return_value = []
        self.assertEqual(self.ws.refresh_keywords(), ["화산", "꿀벌"])

    def test_render_print(self):
        self.ws.select_article("rec_2")
        self.ws.update_answers({"who": "세종대왕", "why": UNKNOWN})
        text = self.ws.render_print()
        self.assertIn(RECOMMENDED_ARTICLES[1].title, text)
        self.assertIn("누가 (WHO): 세종대왕", text)
        self.assertIn(f"왜 (WHY): {UNKNOWN}", text)
        self.assertTrue(text.rstrip().endswith("출력"))
        for field in W1H_FIELDS:
            self.assertIn(f"({field.upper()})", text)


class TestEndToEnd(unittest.TestCase):
    """Topic 이순신 at medium difficulty through generation, selection and analysis."""

    def test_yi_sun_sin_medium(self):
        gemini = MagicMock()
        gemini.generate_text.side_effect = [
            fenced(YI_SUN_SIN_ARTICLE),
            json.dumps(YI_SUN_SIN_ANALYSIS, ensure_ascii=False),
        ]
        store = DocumentStore(MemoryStorage())
        store.load()
        ws = Workspace(ai=W1HAIUtil(gemini=gemini), store=store)
        ws.update_answers({"who": "이전 답"})

        article = ws.generate("이순신", "medium")
        self.assertTrue(article.title and article.category and article.content)
        self.assertTrue(500 <= len(article.content) <= 800)
        self.assertEqual(ws.answers, W1HAnswers())

        result = ws.analyze()
        for field in W1H_FIELDS:
            self.assertTrue(getattr(result.answers, field))
        self.assertEqual(ws.answers, result.answers)


if __name__ == "__main__":
    unittest.main()
