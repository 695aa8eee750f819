from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from loop_habits.insights import LlmRoute, load_router_config, resolve_route


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    owner_chat_id: int | None
    database_path: Path
    tz: str
    quiet_hours: str | None
    backup_dir: Path
    insights_enabled: bool
    insights_provider: str
    insights_model: str
    insights_api_key: str | None
    insights_config_path: Path
    admin_panel_token: str | None
    admin_host: str
    admin_port: int


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(value: str | None, default: int | None) -> int | None:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def load_settings(require_telegram: bool = True) -> Settings:
    _load_env_file(Path(".env"))

    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    if require_telegram and not token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is required")

    router_path = Path(os.getenv("INSIGHTS_CONFIG", "./insights.yaml"))
    route: LlmRoute = resolve_route(
        config=load_router_config(router_path),
        provider_override=os.getenv("INSIGHTS_PROVIDER"),
        model_override=os.getenv("INSIGHTS_MODEL"),
        env_getter=os.getenv,
    )

    return Settings(
        telegram_bot_token=token,
        owner_chat_id=_parse_int(os.getenv("OWNER_CHAT_ID"), None),
        database_path=Path(os.getenv("DATABASE_PATH", "./data/loop.db")),
        tz=os.getenv("TZ", "Europe/Oslo"),
        quiet_hours=os.getenv("QUIET_HOURS") or None,
        backup_dir=Path(os.getenv("BACKUP_DIR", "./data/backups")),
        insights_enabled=_parse_bool(os.getenv("INSIGHTS_ENABLED", "0"), default=False),
        insights_provider=route.provider,
        insights_model=route.model,
        insights_api_key=route.api_key,
        insights_config_path=router_path,
        admin_panel_token=os.getenv("ADMIN_PANEL_TOKEN") or None,
        admin_host=os.getenv("ADMIN_HOST", "127.0.0.1"),
        admin_port=_parse_int(os.getenv("ADMIN_PORT"), 8080) or 8080,
    )
