import json
import unittest
from unittest.mock import MagicMock

from w1h_ai import prompts
from w1h_ai.errors import ConfigurationError, ParseError, ServiceError
from w1h_ai.models import UNKNOWN, W1H_FIELDS
from w1h_ai.w1h_ai import ANALYSIS_SCHEMA, ARTICLE_SCHEMA, KEYWORD_SCHEMA, W1HAIUtil, clean_quotes

from w1h_fixtures import YI_SUN_SIN_ANALYSIS, YI_SUN_SIN_ARTICLE, YI_SUN_SIN_CONTENT, fenced


class TestGenerateArticle(unittest.TestCase):
    def setUp(self):
        self.gemini = MagicMock()
        self.ai = W1HAIUtil(gemini=self.gemini)

    def test_generates_article_from_topic(self):
        self.gemini.generate_text.return_value = fenced(YI_SUN_SIN_ARTICLE)

        article = self.ai.generate_article("이순신", "medium")

        self.assertTrue(article.id.startswith("gen_"))
        self.assertEqual(article.title, YI_SUN_SIN_ARTICLE["title"])
        self.assertEqual(article.category, "역사")
        self.assertEqual(article.content, YI_SUN_SIN_CONTENT)
        self.assertEqual(article.source, "AI 생성 활동지")
        self.assertEqual(article.read_time, "보통")
        self.assertEqual(article.keywords, ("이순신", "AI작문"))

        band = prompts.DIFFICULTY_PROFILES["medium"]
        self.assertTrue(band.min_chars <= len(article.content) <= band.max_chars)

        kwargs = self.gemini.generate_text.call_args.kwargs
        self.assertEqual(kwargs["response_schema"], ARTICLE_SCHEMA)
        self.assertEqual(kwargs["prompt"], prompts.build_article_prompt("이순신", "medium"))

    def test_read_time_follows_difficulty(self):
        self.gemini.generate_text.return_value = json.dumps(YI_SUN_SIN_ARTICLE, ensure_ascii=False)
        self.assertEqual(self.ai.generate_article("이순신", "easy").read_time, "쉬움")
        self.assertEqual(self.ai.generate_article("이순신", "hard").read_time, "어려움")

    def test_service_failure_propagates(self):
        self.gemini.generate_text.side_effect = ServiceError("boom")
        with self.assertRaises(ServiceError):
            self.ai.generate_article("공룡")

    def test_configuration_failure_propagates(self):
        self.gemini.generate_text.side_effect = ConfigurationError("no key")
        with self.assertRaises(ConfigurationError):
            self.ai.generate_article("공룡")

    def test_malformed_response(self):
        self.gemini.generate_text.return_value = '{"title": "제목"}'
        with self.assertRaises(ParseError):
            self.ai.generate_article("공룡")

    def test_rejects_blank_topic_and_bad_difficulty(self):
        with self.assertRaises(ValueError):
            self.ai.generate_article("   ")
        with self.assertRaises(ValueError):
            self.ai.generate_article("공룡", "extreme")
        self.gemini.generate_text.assert_not_called()


class TestAnalyze(unittest.TestCase):
    def setUp(self):
        self.gemini = MagicMock()
        self.ai = W1HAIUtil(gemini=self.gemini)

    def test_returns_six_answers_and_substring_quotes(self):
        self.gemini.generate_text.return_value = fenced(YI_SUN_SIN_ANALYSIS)

        result = self.ai.analyze(YI_SUN_SIN_CONTENT, "medium")

        for field in W1H_FIELDS:
            answer = getattr(result.answers, field)
            self.assertTrue(answer)
            for quote in result.quotes_for(field):
                self.assertIn(quote, YI_SUN_SIN_CONTENT)
        self.assertEqual(result.quotes_for("where"), ("한산도 앞바다",))
        self.assertEqual(self.gemini.generate_text.call_args.kwargs["response_schema"], ANALYSIS_SCHEMA)

    def test_unknown_answer_has_no_quotes_and_bad_quotes_dropped(self):
        payload = json.loads(json.dumps(YI_SUN_SIN_ANALYSIS))
        payload["answers"]["why"] = UNKNOWN
        payload["quotes"]["why"] = ["이순신"]
        payload["quotes"]["who"] = ["이순신", "세종대왕", "이순신"]
        self.gemini.generate_text.return_value = json.dumps(payload, ensure_ascii=False)

        result = self.ai.analyze(YI_SUN_SIN_CONTENT)

        self.assertEqual(result.answers.why, UNKNOWN)
        self.assertEqual(result.quotes_for("why"), ())
        self.assertEqual(result.quotes_for("who"), ("이순신",))

    def test_missing_field_is_parse_error(self):
        payload = json.loads(json.dumps(YI_SUN_SIN_ANALYSIS))
        del payload["quotes"]["when"]
        self.gemini.generate_text.return_value = json.dumps(payload)
        with self.assertRaises(ParseError):
            self.ai.analyze(YI_SUN_SIN_CONTENT)

    def test_prompt_uses_truncated_text(self):
        self.gemini.generate_text.return_value = json.dumps(YI_SUN_SIN_ANALYSIS)
        long_text = YI_SUN_SIN_CONTENT * 20
        self.ai.analyze(long_text, "hard")
        prompt = self.gemini.generate_text.call_args.kwargs["prompt"]
        self.assertEqual(prompt, prompts.build_analysis_prompt(long_text, "hard"))
        self.assertNotIn(long_text, prompt)


class TestSuggestKeywords(unittest.TestCase):
    def setUp(self):
        self.gemini = MagicMock()
        self.ai = W1HAIUtil(gemini=self.gemini)

    def test_returns_at_most_six(self):
        self.gemini.generate_text.return_value = json.dumps(
            ["화산", "반도체", "고려청자", "남극", "유관순", "꿀벌", "우주정거장"], ensure_ascii=False
        )
        self.assertEqual(self.ai.suggest_keywords(), ["화산", "반도체", "고려청자", "남극", "유관순", "꿀벌"])
        self.assertEqual(self.gemini.generate_text.call_args.kwargs["response_schema"], KEYWORD_SCHEMA)

    def test_soft_failure(self):
        for exc in (ServiceError("down"), ConfigurationError("no key"), RuntimeError("anything")):
            with self.subTest(exc=exc):
                self.gemini.generate_text.side_effect = exc
                self.assertEqual(self.ai.suggest_keywords(), [])

    def test_unparseable_is_soft_failure(self):
        self.gemini.generate_text.side_effect = None
        self.gemini.generate_text.return_value = "sorry, no JSON today"
        self.assertEqual(self.ai.suggest_keywords(), [])


class TestCleanQuotes(unittest.TestCase):
    def test_filters(self):
        text = "가나다 라마바"
        self.assertEqual(clean_quotes(text, "답", [" 가나다 ", "없음", "", "라마바"]), ("가나다", "라마바"))
        self.assertEqual(clean_quotes(text, UNKNOWN, ["가나다"]), ())


if __name__ == "__main__":
    unittest.main()
