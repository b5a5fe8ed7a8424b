import os
from dotenv import load_dotenv

# Load .env file only in development environment
if os.environ.get('FLASK_ENV') != 'production':
    load_dotenv()

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'a_very_secret_key_for_dev')
    MONGO_URI = os.environ.get('MONGODB_URI')
    MONGO_DB_NAME = os.environ.get('MONGODB_DB_NAME', 'biaswatch')
    NEWS_API_KEY = os.environ.get('NEWSAPI_KEY')
    GOOGLE_API_KEY = os.environ.get('GOOGLE_API_KEY')
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.0-flash')
    FETCH_TIMEOUT_SECONDS = float(os.environ.get('FETCH_TIMEOUT_SECONDS', 20))
    FLASK_ENV = os.environ.get('FLASK_ENV', 'development')
    FLASK_DEBUG = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', 5000))
    TESTING = False

    # API keys are checked when the component that needs them is built, so the
    # history endpoints keep working without credentials.

class DevelopmentConfig(Config):
    DEBUG = True

class ProductionConfig(Config):
    DEBUG = False
    FLASK_ENV = 'production'

class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    MONGO_URI = None
    NEWS_API_KEY = 'test-news-key'
    GOOGLE_API_KEY = 'test-google-key'

def get_config():
    env = os.environ.get('FLASK_ENV', 'development')
    if env == 'development':
        return DevelopmentConfig
    if env == 'testing':
        return TestingConfig
    return ProductionConfig
