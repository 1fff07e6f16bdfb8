import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value):
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey123")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-here")

    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/quizhub")
    # Overrides the database named in MONGO_URI when set
    DB_NAME = os.getenv("DB_NAME")

    # Requires a replica set
    MONGO_USE_TRANSACTIONS = _as_bool(os.getenv("MONGO_USE_TRANSACTIONS", "false"))

    QUIZ_URL_PREFIX = os.getenv("QUIZ_URL_PREFIX", "/api/quiz")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
