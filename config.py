import os
import tempfile
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///ecgscan.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)

    # Upload settings
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'ecgscan/static/uploads'))
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # Max upload 16MB

    # 'local' (UPLOAD_FOLDER) or 'firebase' (Firebase Storage bucket)
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'local')

    # Firebase Admin SDK (Firebase Console -> Service accounts)
    FIREBASE_ENABLED = os.environ.get('FIREBASE_ENABLED', '0') == '1'
    FIREBASE_SERVICE_ACCOUNT = os.environ.get('FIREBASE_SERVICE_ACCOUNT', 'serviceAccountKey.json')
    FIREBASE_STORAGE_BUCKET = os.environ.get('FIREBASE_STORAGE_BUCKET')

    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-length-for-hs256'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'ecgscan-test-uploads')
    STORAGE_BACKEND = 'local'
    FIREBASE_ENABLED = False
    LOG_LEVEL = 'WARNING'
