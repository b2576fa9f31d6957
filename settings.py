import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


APP_NAME = "Distracto"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "distracto")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRES_MIN = int(os.getenv("ACCESS_TOKEN_EXPIRES_MIN", 60 * 24 * 7))  # 7 days

CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:8080")

# Artificial latency and canned replies in the demo social services
DEMO_MODE = _flag("DEMO_MODE")

DEFAULT_AI_MODEL = os.getenv("DEFAULT_AI_MODEL", "gemini-1.5-flash")
