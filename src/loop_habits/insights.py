from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import yaml

from loop_habits.models import AppState

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
RECENT_LOG_LIMIT = 14
FALLBACK_INSIGHT = "Keep pushing! Small daily wins add up. 🌱"
DISABLED_INSIGHT = "Insights are turned off. Set INSIGHTS_ENABLED=1 and an API key to get coaching tips."


@dataclass(frozen=True)
class ProviderConfig:
    env_key: str
    models: tuple[str, ...]


@dataclass(frozen=True)
class RouterConfig:
    default_provider: str
    default_model: str
    providers: dict[str, ProviderConfig]


@dataclass(frozen=True)
class LlmRoute:
    provider: str
    model: str
    api_key: str | None


@dataclass(frozen=True)
class InsightsContext:
    enabled: bool
    route: LlmRoute


def _default_router() -> RouterConfig:
    return RouterConfig(
        default_provider="openai",
        default_model="gpt-5-mini",
        providers={
            "openai": ProviderConfig(env_key="OPENAI_API_KEY", models=("gpt-5-mini", "gpt-5-nano")),
        },
    )


def load_router_config(path: Path) -> RouterConfig:
    if not path.exists():
        return _default_router()

    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        return _default_router()

    providers: dict[str, ProviderConfig] = {}
    providers_raw = raw.get("providers", {})
    if isinstance(providers_raw, dict):
        for name, payload in providers_raw.items():
            if not isinstance(payload, dict):
                continue
            models_raw = payload.get("models", [])
            models = tuple(str(m).strip() for m in models_raw if str(m).strip()) if isinstance(models_raw, list) else ()
            if not models:
                continue
            providers[str(name).strip().lower()] = ProviderConfig(
                env_key=str(payload.get("env_key") or "OPENAI_API_KEY").strip(),
                models=models,
            )

    if not providers:
        return _default_router()

    default_provider = str(raw.get("default_provider", "")).strip().lower()
    if default_provider not in providers:
        default_provider = next(iter(providers))
    default_model = str(raw.get("default_model", "")).strip()
    if default_model not in providers[default_provider].models:
        default_model = providers[default_provider].models[0]

    return RouterConfig(
        default_provider=default_provider,
        default_model=default_model,
        providers=providers,
    )


def resolve_route(
    config: RouterConfig,
    provider_override: str | None,
    model_override: str | None,
    env_getter: Callable[[str], str | None],
) -> LlmRoute:
    provider = (provider_override or config.default_provider).strip().lower()
    if provider not in config.providers:
        provider = config.default_provider

    p_cfg = config.providers[provider]
    model = (model_override or config.default_model).strip()
    if model not in p_cfg.models and p_cfg.models:
        model = p_cfg.models[0]

    return LlmRoute(provider=provider, model=model, api_key=env_getter(p_cfg.env_key))


def _extract_text(payload: dict[str, Any]) -> str | None:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if isinstance(content, str):
        return content.strip() or None
    return None


def _call_openrouter(route: LlmRoute, prompt: str, max_tokens: int, timeout_seconds: int = 45) -> str | None:
    headers = {
        "Authorization": f"Bearer {route.api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": route.model,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
        "temperature": 0.7,
    }
    try:
        with httpx.Client(timeout=timeout_seconds) as client:
            resp = client.post(OPENROUTER_URL, headers=headers, json=payload)
            if resp.status_code >= 400:
                logger.warning("openrouter error status=%s", resp.status_code)
                return None
            data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("openrouter request failed: %s", exc)
        return None
    return _extract_text(data) if isinstance(data, dict) else None


def _call_openai(route: LlmRoute, prompt: str, max_tokens: int) -> str | None:
    try:
        from openai import OpenAI

        client = OpenAI(api_key=route.api_key)
        resp = client.responses.create(
            model=route.model,
            input=prompt,
            max_output_tokens=max_tokens,
        )
        text = (resp.output_text or "").strip()
        return text or None
    except Exception as exc:
        logger.warning("openai request failed: %s", exc)
        return None


def call_text(route: LlmRoute, prompt: str, max_tokens: int) -> str | None:
    if not route.api_key:
        return None
    if route.provider == "openai":
        return _call_openai(route, prompt, max_tokens)
    if route.provider == "openrouter":
        return _call_openrouter(route, prompt, max_tokens)
    logger.warning("insights provider not wired: %s", route.provider)
    return None


def summarize_recent_logs(state: AppState, limit: int = RECENT_LOG_LIMIT) -> list[dict[str, Any]]:
    days = sorted(state.logs, reverse=True)[:limit]
    return [
        {
            "date": day.isoformat(),
            "completedCount": state.logs[day].completed_count,
            "sleep": state.logs[day].sleep_hours,
        }
        for day in days
    ]


def build_insight_prompt(state: AppState) -> str:
    habit_names = ", ".join(h.title for h in state.habits) or "no habits yet"
    return (
        'You are an enthusiastic and wise habit coach for an app called "Loop".\n'
        "Analyze the user's recent performance based on this JSON summary:\n"
        f"{json.dumps(summarize_recent_logs(state))}\n\n"
        f"User context: {state.profile.name or 'The user'} is tracking these habits: {habit_names}.\n\n"
        "Provide a short, punchy, and motivating insight (max 2 sentences). "
        "If they are doing well, praise them. If they are struggling with consistency or sleep, give a gentle tip. "
        "Plain text with emojis, no markdown."
    )


def habit_insight(ctx: InsightsContext, state: AppState) -> str:
    if not ctx.enabled:
        return DISABLED_INSIGHT
    text = call_text(ctx.route, build_insight_prompt(state), max_tokens=150)
    return text or FALLBACK_INSIGHT
