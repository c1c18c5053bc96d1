import logging
import os
import sys

from flask import Flask, Response, jsonify, request
from pymongo.errors import PyMongoError

import set_env_vars
from backend.document_store import DEFAULT_STORAGE_KEY, DocumentStore, JsonFileStorage, MongoStorage
from backend.mongo import connect
from backend.workspace import (
    ArticleNotFoundError,
    DocumentNotFoundError,
    NoArticleSelectedError,
    Workspace,
    WorkspaceBusyError,
)
from w1h_ai import ConfigurationError, GeminiClient, W1HAIError, W1HAIUtil, W1H_FIELDS

set_env_vars.load()


def _configure_logging() -> logging.Logger:
    level = getattr(logging, (os.getenv("W1H_LOG_LEVEL") or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        root.addHandler(sh)
    root.setLevel(level)
    return logging.getLogger("w1h")


logger = _configure_logging()
logger.info("Environment status: %s", set_env_vars.env_status())


def _build_storage():
    key = os.getenv("W1H_STORAGE_KEY") or DEFAULT_STORAGE_KEY
    if os.getenv("MONGO_URI"):
        try:
            return MongoStorage(connect(), key=key)
        except (RuntimeError, PyMongoError) as e:
            logger.warning("MongoDB unavailable, falling back to file storage: %s", e)
    path = os.getenv("W1H_STORAGE_PATH") or os.path.join("data", "saved_docs.json")
    logger.info("Saving worksheets to %s", path)
    return JsonFileStorage(path)


server = Flask(__name__, static_folder="frontend/dist", static_url_path="")

store = DocumentStore(_build_storage())
store.load()

ai_util = W1HAIUtil(gemini=GeminiClient())
workspace = Workspace(ai=ai_util, store=store)

GENERATE_FAILED = "글 생성 중 오류가 발생했습니다."
ANALYZE_FAILED = "AI 분석에 실패했습니다. 잠시 후 다시 시도해주세요."
AI_NOT_CONFIGURED = "AI 기능이 설정되지 않았습니다. API 키를 확인해주세요."


def _error(message, status):
    return jsonify({"error": message}), status


def _payload():
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


@server.route("/api/hello")
def hello():
    return jsonify({"message": "API Working!"})


@server.route("/api/articles", methods=["GET"])
def list_articles():
    return jsonify({
        "articles": [a.to_dict() for a in workspace.articles],
        "selectedId": workspace.selected.id if workspace.selected else None,
    })


@server.route("/api/articles/generate", methods=["POST"])
def generate_article():
    payload = _payload()
    topic = str(payload.get("topic") or "").strip()
    if not topic:
        return _error("No topic provided", 400)

    try:
        article = workspace.generate(topic, payload.get("difficulty"))
    except ValueError as e:
        return _error(str(e), 400)
    except WorkspaceBusyError as e:
        return _error(str(e), 409)
    except ConfigurationError as e:
        logger.error("Article generation unavailable: %s", e)
        return _error(AI_NOT_CONFIGURED, 500)
    except W1HAIError:
        return _error(GENERATE_FAILED, 502)

    return jsonify(article.to_dict())


@server.route("/api/articles/clear", methods=["POST"])
def clear_articles():
    removed = workspace.clear_articles()
    return jsonify({"status": "Article list cleared", "removed": removed})


@server.route("/api/articles/<articleID>/select", methods=["POST"])
def select_article(articleID):
    try:
        workspace.select_article(articleID)
    except ArticleNotFoundError:
        return _error("Article not found", 404)
    return jsonify(workspace.snapshot())


@server.route("/api/worksheet", methods=["GET"])
def get_worksheet():
    return jsonify(workspace.snapshot())


@server.route("/api/worksheet/answers", methods=["POST"])
def update_answers():
    payload = _payload()
    values = {k: v for k, v in payload.items() if k in W1H_FIELDS}
    if not values:
        return _error("No valid fields to update", 400)
    answers = workspace.update_answers(values)
    return jsonify(answers.to_dict())


@server.route("/api/worksheet/difficulty", methods=["POST"])
def set_difficulty():
    try:
        difficulty = workspace.set_difficulty(_payload().get("difficulty"))
    except ValueError as e:
        return _error(str(e), 400)
    return jsonify({"difficulty": difficulty})


@server.route("/api/worksheet/analyze", methods=["POST"])
def analyze_worksheet():
    try:
        result = workspace.analyze()
    except NoArticleSelectedError as e:
        return _error(str(e), 409)
    except WorkspaceBusyError as e:
        return _error(str(e), 409)
    except ConfigurationError as e:
        logger.error("Analysis unavailable: %s", e)
        return _error(AI_NOT_CONFIGURED, 500)
    except W1HAIError:
        return _error(ANALYZE_FAILED, 502)
    return jsonify(result.to_dict())


@server.route("/api/worksheet/save", methods=["POST"])
def save_worksheet():
    try:
        doc = workspace.save()
    except NoArticleSelectedError as e:
        return _error(str(e), 409)
    return jsonify(doc.to_dict() | {"persistent": workspace.store.persistent})


@server.route("/api/worksheet/print", methods=["GET"])
def print_worksheet():
    try:
        text = workspace.render_print()
    except NoArticleSelectedError as e:
        return _error(str(e), 409)
    return Response(text, mimetype="text/plain")


@server.route("/api/documents", methods=["GET"])
def list_documents():
    return jsonify([d.to_dict() for d in workspace.store.documents])


@server.route("/api/documents/<int:docID>/load", methods=["POST"])
def load_document(docID):
    try:
        workspace.load_document(docID)
    except DocumentNotFoundError:
        return _error("Document not found", 404)
    return jsonify(workspace.snapshot())


@server.route("/api/documents/<int:docID>", methods=["DELETE"])
def delete_document(docID):
    try:
        workspace.delete_document(docID)
    except DocumentNotFoundError:
        return _error("Document not found", 404)
    return jsonify({"status": "Document deleted"})


@server.route("/api/keywords", methods=["GET"])
def get_keywords():
    try:
        keywords = workspace.refresh_keywords()
    except WorkspaceBusyError:
        keywords = list(workspace.keywords)
    return jsonify(keywords)


@server.route("/", defaults={"path": ""})
@server.route("/<path:path>")
def spa(path):
    if path.startswith("api"):
        return jsonify({"error": "API route not found"}), 404

    return server.send_static_file("index.html")


def main():
    # One Workspace per process; serve requests one at a time
    server.run(port=int(os.getenv("PORT") or 8080), threaded=False)


if __name__ == '__main__':
    main()
