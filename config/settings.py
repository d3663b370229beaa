"""Configuration helpers for the AI Hub project."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_SUGGESTED_PROMPTS = [
    "View from a Bangalore flyover at night, headlights and taillights streaking below, "
    "distant city towers faintly glowing in haze, realistic cinematic tone",
    "green dress anime girl warrior",
    "wall art for men using a lion with scripture",
    "Sunset over the ocean",
    "Japanese female high school student walking in Shibuya",
]

DEFAULT_SUGGESTED_QUESTIONS = [
    "What can you help me with?",
    "Tell me a joke",
    "How does AI work?",
    "What's the weather like?",
    "Write a short poem",
]


@dataclass(slots=True)
class AppConfig:
    """Centralized application configuration."""

    api_base_url: str = "http://localhost:3000"
    image_endpoint: str = "/api/imagine"
    chat_endpoint: str = "/api/chat"
    image_proxy_path: str = "/api/imagine"
    chat_proxy_path: str = "/api/chat"
    public_proxy_url: str = "https://api.allorigins.win"
    request_timeout: Optional[float] = None
    history_limit: int = 10
    log_dir: Path = Path("logs")
    history_path: Path = Path("logs/storage.json")
    download_dir: Path = Path("downloads")
    suggested_prompts: list[str] = field(default_factory=lambda: list(DEFAULT_SUGGESTED_PROMPTS))
    suggested_questions: list[str] = field(default_factory=lambda: list(DEFAULT_SUGGESTED_QUESTIONS))


def _load_env_file(path: Path) -> None:
    """Populate environment variables from a simple KEY=VALUE .env file."""
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ[key.strip()] = value.strip()


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if raw in (None, ""):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _parse_limit(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw else default
    except (TypeError, ValueError):
        return default
    return max(1, value)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Return an AppConfig instance with environment-aware settings."""
    env_path = Path(config_path) if config_path else Path(".env")
    _load_env_file(env_path)

    defaults = AppConfig()
    api_base_url = os.getenv("AI_HUB_API_BASE_URL", defaults.api_base_url).rstrip("/")
    # An empty value disables the public proxy strategy altogether.
    public_proxy_url = os.getenv("AI_HUB_PUBLIC_PROXY_URL", defaults.public_proxy_url).rstrip("/")

    log_dir = Path(os.getenv("AI_HUB_LOG_DIR", str(defaults.log_dir))).expanduser()
    history_path = Path(
        os.getenv("AI_HUB_HISTORY_PATH", str(log_dir / "storage.json"))
    ).expanduser()
    download_dir = Path(os.getenv("AI_HUB_DOWNLOAD_DIR", str(defaults.download_dir))).expanduser()

    return AppConfig(
        api_base_url=api_base_url,
        image_proxy_path=os.getenv("AI_HUB_PROXY_PATH_IMAGE", defaults.image_proxy_path),
        chat_proxy_path=os.getenv("AI_HUB_PROXY_PATH_CHAT", defaults.chat_proxy_path),
        public_proxy_url=public_proxy_url,
        request_timeout=_parse_timeout(os.getenv("REQUEST_TIMEOUT")),
        history_limit=_parse_limit(os.getenv("AI_HUB_HISTORY_LIMIT"), defaults.history_limit),
        log_dir=log_dir,
        history_path=history_path,
        download_dir=download_dir,
    )
