import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.environ.get(name)
    if value is None:
        return default
    items = tuple(part.strip() for part in value.split(",") if part.strip())
    return items or default


DEFAULT_PRODUCTS = (
    "Cal Calcítico",
    "Cal Dolomítico",
    "Cal Hidratada",
    "Calcário Calcítico",
    "Calcário Dolomítico",
)

DEFAULT_DESTINATIONS = (
    "Serra - ES",
    "Vitória - ES",
    "Vila Velha - ES",
    "Cariacica - ES",
    "Aracruz - ES",
)


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))

    # Serverless deployments (read-only filesystem, invoked per request) only
    # have /tmp available for the database and the log file.
    SERVERLESS = _bool_env("SERVERLESS", bool(os.environ.get("VERCEL")))
    ENV_NAME = "serverless" if SERVERLESS else "local"
    WRITABLE_DIR = "/tmp" if SERVERLESS else os.getcwd()

    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else WRITABLE_DIR
    DB_PATH = DATABASE_URL or os.path.join(WRITABLE_DIR, "stock.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", True)

    HOST = os.environ.get("HOST", "0.0.0.0")
    PORT = _int_env("PORT", 3000)
    STATIC_DIR = os.environ.get("STATIC_DIR", os.path.join(BASE_DIR, "dist"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_FILE_ENABLED = _bool_env("LOG_FILE_ENABLED", True)
    LOG_DIR = os.environ.get("LOG_DIR", WRITABLE_DIR)

    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
    AI_MODEL = os.environ.get("AI_MODEL", "gemini-2.5-flash")
    AI_ENDPOINT = os.environ.get(
        "AI_ENDPOINT",
        "https://generativelanguage.googleapis.com/v1beta/models",
    )
    AI_TIMEOUT_SECONDS = _int_env("AI_TIMEOUT_SECONDS", 60)

    ENFORCE_ENTRY_ENUMS = _bool_env("ENFORCE_ENTRY_ENUMS", True)
    ENTRY_PRODUCTS = _csv_env("ENTRY_PRODUCTS", DEFAULT_PRODUCTS)
    ENTRY_DESTINATIONS = _csv_env("ENTRY_DESTINATIONS", DEFAULT_DESTINATIONS)
