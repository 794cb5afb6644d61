# sahayak/config.py
# Process-wide defaults. Every value can be overridden through a SAHAYAK_*
# environment variable; the entry points additionally accept positional CLI
# overrides (see client/main_tui.py).

import os
from dataclasses import dataclass


DEFAULT_PORT = 8080

OLLAMA_URL = "http://localhost:11434/api/generate"

# Model used by the educator for quizzes and doubt summaries
EDUCATOR_MODEL = "qwen3:1.7b"
# Model used by the learner for hints
LEARNER_MODEL = "tinyllama"
# Model used when falling back to `ollama run` on the command line
FALLBACK_MODEL = "tinyllama"

# Doubt collection closes this long after the last submission
DOUBT_WINDOW_MS = 120_000
# ...but never later than this after the window was opened
DOUBT_MAX_LIFETIME_MS = 600_000


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    ollama_url: str = OLLAMA_URL
    educator_model: str = EDUCATOR_MODEL
    learner_model: str = LEARNER_MODEL
    fallback_model: str = FALLBACK_MODEL
    http_timeout: float = 60.0     # seconds, per HTTP attempt
    cli_timeout: float = 90.0      # seconds, per `ollama run` attempt
    use_cli_fallback: bool = True

    doubt_window_ms: int = DOUBT_WINDOW_MS
    doubt_max_lifetime_ms: int | None = DOUBT_MAX_LIFETIME_MS

    allow_duplicate_answers: bool = False
    send_correct_index: bool = True

    log_dir: str = "logs"

    @classmethod
    def from_env(cls) -> "Settings":
        lifetime = _env_int("SAHAYAK_DOUBT_MAX_LIFETIME_MS", DOUBT_MAX_LIFETIME_MS)
        return cls(
            host=os.environ.get("SAHAYAK_HOST", "0.0.0.0"),
            port=_env_int("SAHAYAK_PORT", DEFAULT_PORT),
            ollama_url=os.environ.get("SAHAYAK_OLLAMA_URL", OLLAMA_URL),
            educator_model=os.environ.get("SAHAYAK_EDUCATOR_MODEL", EDUCATOR_MODEL),
            learner_model=os.environ.get("SAHAYAK_LEARNER_MODEL", LEARNER_MODEL),
            fallback_model=os.environ.get("SAHAYAK_FALLBACK_MODEL", FALLBACK_MODEL),
            http_timeout=_env_float("SAHAYAK_HTTP_TIMEOUT", 60.0),
            cli_timeout=_env_float("SAHAYAK_CLI_TIMEOUT", 90.0),
            use_cli_fallback=_env_bool("SAHAYAK_USE_CLI_FALLBACK", True),
            doubt_window_ms=_env_int("SAHAYAK_DOUBT_WINDOW_MS", DOUBT_WINDOW_MS),
            # 0 disables the cap
            doubt_max_lifetime_ms=lifetime if lifetime > 0 else None,
            allow_duplicate_answers=_env_bool("SAHAYAK_ALLOW_DUPLICATE_ANSWERS", False),
            send_correct_index=_env_bool("SAHAYAK_SEND_CORRECT_INDEX", True),
            log_dir=os.environ.get("SAHAYAK_LOG_DIR", "logs"),
        )
