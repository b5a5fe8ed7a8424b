from flask import Flask
import logging
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from biaswatch.services.storage import MemStorage

# Initialize these at module level
mongo_client = None


def init_storage(app):
    """Pick the article store: MongoDB when MONGO_URI is set and reachable, memory otherwise."""
    global mongo_client
    mongo_uri = app.config.get('MONGO_URI')
    if not mongo_uri:
        app.logger.info("MONGO_URI not set; using in-memory article storage")
        return MemStorage()

    try:
        from biaswatch.services.mongo_storage import MongoArticleStorage

        mongo_client = MongoClient(mongo_uri, tz_aware=True, serverSelectionTimeoutMS=5000)
        # Test the connection explicitly
        mongo_client.admin.command('ping')
        storage = MongoArticleStorage(mongo_client.get_database(app.config.get('MONGO_DB_NAME', 'biaswatch')))
        storage.ensure_indexes()
        app.logger.info("Successfully connected to MongoDB")
        return storage

    except ConnectionFailure as e:
        app.logger.error(f"Failed to connect to MongoDB: {e}")
    except PyMongoError as e:
        app.logger.error(f"Unexpected error connecting to MongoDB: {e}")

    app.logger.error("Falling back to in-memory article storage; history will not survive a restart.")
    return MemStorage()


def create_app(config_object, storage=None, completion=None, news_search=None):
    """
    Create and configure the Flask application.

    storage, completion and news_search replace the configured collaborators;
    tests pass stubs here.
    """
    app = Flask(__name__)

    # Configure logging first
    logging.basicConfig(level=logging.INFO)
    app.logger.setLevel(logging.INFO)

    # Load configuration
    try:
        app.config.from_object(config_object)
    except Exception as e:
        app.logger.error(f"Failed to load configuration: {e}")
        raise

    if storage is None:
        storage = init_storage(app)

    # Register blueprints and initialize routes
    from .routes.main import main_bp, init_route_dependencies
    app.register_blueprint(main_bp)

    with app.app_context():
        init_route_dependencies(app, storage=storage, completion=completion, news_search=news_search)

    @app.route('/')
    def index():
        return "BiasWatch Backend is running!"

    return app


# Clean up resources when the application exits
def cleanup():
    global mongo_client
    if mongo_client is not None:
        try:
            mongo_client.close()
        except PyMongoError as e:
            logging.error(f"Error closing MongoDB connection: {e}")


import atexit
atexit.register(cleanup)

__all__ = ['create_app', 'init_storage']
