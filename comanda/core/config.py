import os
from dotenv import load_dotenv

# Carga el .env de la raíz del proyecto
load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid {name}: {raw}") from exc


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./comanda.db")
# algunos proveedores todavía entregan postgres://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
SQL_ECHO = _env_flag("SQL_ECHO")

# WhatsApp Cloud API
META_WHATSAPP_TOKEN = os.getenv("META_WHATSAPP_TOKEN", "")
META_PHONE_NUMBER_ID = os.getenv("META_PHONE_NUMBER_ID", "")
META_VERIFY_TOKEN = os.getenv("META_VERIFY_TOKEN", "")
META_APP_SECRET = os.getenv("META_APP_SECRET", "")
META_API_VERSION = os.getenv("META_API_VERSION", "v21.0")
CATALOG_ID = os.getenv("CATALOG_ID", "")
WHATSAPP_PROVIDER = os.getenv("WHATSAPP_PROVIDER", "cloud").strip().lower()
WHATSAPP_429_RETRIES = _env_int("WHATSAPP_429_RETRIES", 2)
WHATSAPP_DEFAULT_RETRY_AFTER = _env_int("WHATSAPP_DEFAULT_RETRY_AFTER", 5)
WHATSAPP_MAX_RETRY_AFTER = _env_int("WHATSAPP_MAX_RETRY_AFTER", 30)

# Negocio / operador
TIMEZONE = os.getenv("TIMEZONE", "America/Argentina/Buenos_Aires")
ALERT_PHONE = os.getenv("ALERT_PHONE", "").strip().lstrip("+")
SUPPORT_PHONE = os.getenv("SUPPORT_PHONE", ALERT_PHONE).strip().lstrip("+")
INVITE_CODE_PATTERN = os.getenv("INVITE_CODE_PATTERN", r"^REST-[A-Z0-9]{4}$")
TRIAL_PLAN_SLUG = os.getenv("TRIAL_PLAN_SLUG", "intermedio").strip().lower()
TRIAL_DAYS = _env_int("TRIAL_DAYS", 30)

# LLM providers (OpenAI-compatible chat completions)
GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
CEREBRAS_API_KEY = os.getenv("CEREBRAS_API_KEY", "")
CEREBRAS_MODEL = os.getenv("CEREBRAS_MODEL", "llama3.1-8b")
MISTRAL_API_KEY = os.getenv("MISTRAL_API_KEY", "")
MISTRAL_MODEL = os.getenv("MISTRAL_MODEL", "mistral-small-latest")
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "meta-llama/llama-3.3-70b-instruct:free")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))

# Protección
RATE_LIMIT_MAX = _env_int("RATE_LIMIT_MAX", 30)
RATE_LIMIT_WINDOW_SECONDS = _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)
TENANT_CACHE_TTL_SECONDS = _env_int("TENANT_CACHE_TTL_SECONDS", 300)

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]
