from datetime import datetime, timezone
from flask import Blueprint, request, jsonify, current_app

from biaswatch.errors import BiasWatchError, ValidationError
from biaswatch.services.analyzer import BiasAnalyzer
from biaswatch.services.completion import GeminiCompletionService
from biaswatch.services.news_search import NewsSearchClient

# Initialize the blueprint
main_bp = Blueprint('main', __name__)

RECENT_LIMIT = 5
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def init_route_dependencies(app, storage, completion=None, news_search=None):
    """Attach the store and external clients to the app."""
    if storage is None:
        app.logger.error("Article storage not initialized")
        raise RuntimeError("Article storage not initialized")

    if news_search is None:
        news_search = NewsSearchClient(app.config.get('NEWS_API_KEY'))

    app.extensions['biaswatch'] = {
        'storage': storage,
        'completion': completion,
        'news_search': news_search,
    }
    app.logger.info(f"Routes initialized with {storage.name} storage")


def get_storage():
    return current_app.extensions['biaswatch']['storage']


def get_analyzer():
    """Build an analyzer; the Gemini client is created on first use so a missing key only fails analysis requests."""
    deps = current_app.extensions['biaswatch']
    if deps['completion'] is None:
        deps['completion'] = GeminiCompletionService(
            current_app.config.get('GOOGLE_API_KEY'),
            model=current_app.config.get('GEMINI_MODEL', 'gemini-2.0-flash'),
        )
    return BiasAnalyzer(
        deps['completion'],
        news_search=deps['news_search'],
        fetch_timeout=current_app.config.get('FETCH_TIMEOUT_SECONDS', 20.0),
    )


def error_response(message, status):
    return jsonify({"message": message}), status


def _positive_int_arg(name, default):
    value = request.args.get(name, default, type=int)
    if value is None or value < 1:
        return default
    return value


def _source_arg():
    source = (request.args.get('source') or '').strip()
    if not source or source.lower() == 'all':
        return None
    return source


@main_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    deps = current_app.extensions['biaswatch']
    return jsonify({
        "status": "ok",
        "message": "BiasWatch Backend is healthy!",
        "dependencies": {
            "storage": deps['storage'].name,
            "news_api_key": "present" if current_app.config.get('NEWS_API_KEY') else "missing",
            "google_ai_key": "present" if current_app.config.get('GOOGLE_API_KEY') else "missing"
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }), 200


@main_bp.route('/api/analyze', methods=['POST'])
def analyze_article():
    """
    Analyze an article and store the result.
    Expects JSON body: {"url": "..."} OR {"text": "..."}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response("Request must be a JSON object", 400)
    if not data.get('url') and not data.get('text'):
        return error_response("Either URL or text must be provided", 400)

    try:
        result = get_analyzer().analyze(data)
        article = get_storage().create_article(result.to_article_create())
        return jsonify(article.to_json()), 200
    except ValidationError as e:
        return error_response(str(e), 400)
    except BiasWatchError as e:
        current_app.logger.error(f"Error analyzing article: {e}")
        return error_response(str(e), 500)
    except Exception as e:
        current_app.logger.error(f"Unexpected error analyzing article: {e}", exc_info=True)
        return error_response(f"Failed to analyze article: {e}", 500)


@main_bp.route('/api/articles/latest', methods=['GET'])
def get_latest_article():
    try:
        article = get_storage().get_latest_article()
    except BiasWatchError as e:
        current_app.logger.error(f"Error fetching latest article: {e}")
        return error_response(str(e), 500)
    if not article:
        return error_response("No articles found", 404)
    return jsonify(article.to_json()), 200


@main_bp.route('/api/articles/recent', methods=['GET'])
def get_recent_articles():
    try:
        articles = get_storage().get_recent_articles(RECENT_LIMIT)
    except BiasWatchError as e:
        current_app.logger.error(f"Error fetching recent articles: {e}")
        return error_response(str(e), 500)
    return jsonify([article.to_json() for article in articles]), 200


@main_bp.route('/api/articles/history', methods=['GET'])
def get_article_history():
    """
    Paginated history, newest first.
    Query parameters: source, page, limit
    """
    page = _positive_int_arg('page', 1)
    limit = min(_positive_int_arg('limit', DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
    try:
        articles = get_storage().get_article_history(page, limit, _source_arg())
    except BiasWatchError as e:
        current_app.logger.error(f"Error fetching article history: {e}")
        return error_response(str(e), 500)
    return jsonify([article.to_json() for article in articles]), 200


@main_bp.route('/api/articles/count', methods=['GET'])
def get_article_count():
    """
    Number of stored articles.
    Query parameters: source, search
    """
    search = (request.args.get('search') or '').strip() or None
    try:
        count = get_storage().get_article_count(_source_arg(), search)
    except BiasWatchError as e:
        current_app.logger.error(f"Error fetching article count: {e}")
        return error_response(str(e), 500)
    return jsonify(count), 200


@main_bp.route('/api/articles/<int:article_id>', methods=['GET'])
def get_article_detail(article_id):
    try:
        article = get_storage().get_article(article_id)
    except BiasWatchError as e:
        current_app.logger.error(f"Error fetching article {article_id}: {e}")
        return error_response(str(e), 500)
    if not article:
        return error_response("Article not found", 404)
    return jsonify(article.to_json()), 200


@main_bp.route('/api/compare', methods=['POST'])
def compare_sources():
    """
    Compare coverage of one story across outlets.
    Expects JSON body: {"topic": "...", "sources": ["...", ...]} (sources optional)
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response("Request must be a JSON object", 400)

    topic = data.get('topic')
    if not isinstance(topic, str) or not topic.strip():
        return error_response("Topic must be provided", 400)

    sources = data.get('sources')
    if sources is not None and (
        not isinstance(sources, list) or not all(isinstance(source, str) and source.strip() for source in sources)
    ):
        return error_response("Sources must be a list of source names", 400)

    try:
        results = get_analyzer().compare_sources(topic, [source.strip() for source in sources or []])
        return jsonify([result.to_json() for result in results]), 200
    except ValidationError as e:
        return error_response(str(e), 400)
    except BiasWatchError as e:
        current_app.logger.error(f"Error comparing sources: {e}")
        return error_response(str(e), 500)
    except Exception as e:
        current_app.logger.error(f"Unexpected error comparing sources: {e}", exc_info=True)
        return error_response(f"Failed to compare sources: {e}", 500)
