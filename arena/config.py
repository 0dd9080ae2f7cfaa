import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///arena.db")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")

    CORS_ORIGINS = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173"
    )

    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "600 per hour")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    # deposit/withdrawal submissions per user
    SUBMISSION_RATE_LIMIT = os.getenv("SUBMISSION_RATE_LIMIT", "3 per minute")

    ACCESS_EXPIRES = int(os.getenv("ACCESS_EXPIRES", 86400))
    REFRESH_EXPIRES = int(os.getenv("REFRESH_EXPIRES", 604800))
    basedir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    STORAGE_ROOT = os.getenv("STORAGE_ROOT", os.path.join(basedir, "uploads"))
    PUBLIC_BUCKETS = ("avatars", "covers")
    PRIVATE_BUCKETS = ("proofs",)
    PROOF_MIME_TYPES = ("image/jpeg", "image/png", "image/webp")
    MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))
    SIGNED_URL_EXPIRES = int(os.getenv("SIGNED_URL_EXPIRES", 7 * 24 * 3600))
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES * 2

    MIN_DEPOSIT_PKR = os.getenv("MIN_DEPOSIT_PKR", "180")
    MIN_WITHDRAWAL_ZC = os.getenv("MIN_WITHDRAWAL_ZC", "100")
    DEFAULT_CONVERSION_RATE = os.getenv("DEFAULT_CONVERSION_RATE", "90")
    CONVERSION_RATE_CACHE_SECONDS = int(os.getenv("CONVERSION_RATE_CACHE_SECONDS", 300))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

class DevelopmentConfig(Config):
    DEBUG = True

class ProductionConfig(Config):
    DEBUG = False

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    RATELIMIT_ENABLED = False
    CONVERSION_RATE_CACHE_SECONDS = 0
    BCRYPT_LOG_ROUNDS = 4

CONFIGS = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
