import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
ANTHROPIC_API_KEY = str(os.getenv("ANTHROPIC_API_KEY") or "").strip()
GEMINI_API_KEY = str(os.getenv("GEMINI_API_KEY") or "").strip()

OPENAI_MODEL = str(os.getenv("OPENAI_MODEL") or "gpt-4o-mini").strip()
CLAUDE_MODEL = str(os.getenv("CLAUDE_MODEL") or "claude-3-haiku-20240307").strip()
GEMINI_MODEL = str(os.getenv("GEMINI_MODEL") or "gemini-1.5-flash").strip()

PRIMARY_PROVIDER = str(os.getenv("PRIMARY_PROVIDER") or "openai").strip().lower()
RESPONSE_STYLE = str(os.getenv("RESPONSE_STYLE") or "balanced").strip().lower()
COACHING_FRAMEWORK = str(os.getenv("COACHING_FRAMEWORK") or "star").strip().lower()
LOCAL_FALLBACK_ENABLED = _env_flag("LOCAL_FALLBACK_ENABLED", "false")

PROVIDER_TIMEOUT_SEC = max(1.0, float(os.getenv("PROVIDER_TIMEOUT_SEC", "20")))
SUGGESTION_THROTTLE_SEC = max(0.0, float(os.getenv("SUGGESTION_THROTTLE_SEC", "2.0")))
HEALTH_CHECK_INTERVAL_SEC = max(0.0, float(os.getenv("HEALTH_CHECK_INTERVAL_SEC", "300")))

SESSION_HISTORY_LIMIT = max(1, int(os.getenv("SESSION_HISTORY_LIMIT", "50")))
SESSION_HISTORY_PATH = str(os.getenv("SESSION_HISTORY_PATH") or (_BACKEND_ROOT / "data" / "session_history.json")).strip()
SESSION_HISTORY_PERSIST = _env_flag("SESSION_HISTORY_PERSIST", "true")
SESSION_PLATFORM = str(os.getenv("SESSION_PLATFORM") or "Live Meeting").strip()

QA_MODE = _env_flag("QA_MODE", "false")
