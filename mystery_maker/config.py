"""Environment-driven settings.

Values come from the process environment (a repo-root `.env` is loaded by the
app module and the dev launcher). Settings are rebuilt on every call so that
tests can monkeypatch environment variables freely.
"""

import os
from pathlib import Path

from pydantic import BaseModel

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


class Settings(BaseModel):
    anthropic_api_key: str = ""
    anthropic_url: str = "https://api.anthropic.com"
    anthropic_model: str = "claude-3-7-sonnet-20250219"
    free_prompt: str = ""
    paid_prompt: str = ""
    use_real_api: bool = False
    webhook_url: str = ""
    callback_base_url: str = "https://www.mysterymaker.party"
    test_callback_base_url: str = "http://localhost:5173"
    proxy_url: str = "http://localhost:13013/api/proxy-with-prompts"
    fallback_proxy_url: str = ""
    poll_interval: float = 30.0
    data_dir: Path = DEFAULT_DATA_DIR


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() == "true"


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
        anthropic_url=os.getenv("ANTHROPIC_API_URL", "https://api.anthropic.com"),
        anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-7-sonnet-20250219"),
        # MYSTERY_FREE_PROMPT is the older name of the free prompt variable
        free_prompt=os.getenv("MURDER_MYSTERY_FREE_PROMPT") or os.getenv("MYSTERY_FREE_PROMPT", ""),
        paid_prompt=os.getenv("MURDER_MYSTERY_PAID_PROMPT", ""),
        use_real_api=_flag("USE_REAL_API"),
        webhook_url=os.getenv("GENERATION_WEBHOOK_URL", ""),
        callback_base_url=os.getenv("CALLBACK_BASE_URL", "https://www.mysterymaker.party"),
        test_callback_base_url=os.getenv("TEST_CALLBACK_BASE_URL", "http://localhost:5173"),
        proxy_url=os.getenv("AI_PROXY_URL", "http://localhost:13013/api/proxy-with-prompts"),
        fallback_proxy_url=os.getenv("AI_FALLBACK_PROXY_URL", ""),
        poll_interval=float(os.getenv("STATUS_POLL_INTERVAL", "30")),
        data_dir=Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR))),
    )
