"""Configuration loading: config.yaml settings plus .env credentials."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_GEMINI_MODELS = [
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-1.5-pro",
    "gemini-1.5-flash",
]
DEFAULT_OPENAI_MODEL = "gpt-4-turbo"


def load_config(config_path: str | Path = "config.yaml") -> Dict[str, Any]:
    """
    Load the YAML settings file.

    Args:
        config_path (str | Path): Path to the config file.

    Returns:
        Dict[str, Any]: Parsed settings.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is empty or not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path.absolute()}")

    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if not config:
        raise ValueError(f"Configuration file is empty: {path.absolute()}")
    if not isinstance(config, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path.absolute()}")

    return config


def section(config: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    """Return one config section as a dict, empty when missing."""
    if not config:
        return {}
    value = config.get(name) or {}
    return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class AIProviderConfig:
    """Explicit LLM provider settings handed to the orchestrator at call time.

    Attributes:
        provider: ``"openai"`` or ``"gemini"``.
        openai_api_key: OpenAI credential, if any.
        gemini_api_key: Gemini credential, if any.
        openai_model: Chat-completions model for OpenAI.
        gemini_models: Gemini models tried in order until one answers.
        temperature: Sampling temperature.
        max_tokens: Completion budget (OpenAI caps this at 4096).
    """
    provider: str = "openai"
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    gemini_models: tuple = tuple(DEFAULT_GEMINI_MODELS)
    temperature: float = 0.7
    max_tokens: int = 4096

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> "AIProviderConfig":
        """
        Combine the ``ai`` config section with environment credentials.

        Provider choice: ``AI_PROVIDER`` env var, then the ``provider`` setting,
        then Gemini when only a Gemini key is present, else OpenAI.

        Args:
            settings (Optional[Dict[str, Any]]): The ``ai`` section of config.yaml.
            environ (Optional[Dict[str, str]]): Environment mapping (defaults to os.environ).

        Returns:
            AIProviderConfig: Resolved configuration.
        """
        settings = settings or {}
        env = os.environ if environ is None else environ

        openai_key = env.get("OPENAI_API_KEY") or None
        gemini_key = env.get("GEMINI_API_KEY") or None

        provider = (env.get("AI_PROVIDER") or settings.get("provider") or "").lower()
        if provider not in ("openai", "gemini"):
            provider = "gemini" if gemini_key and not openai_key else "openai"

        models: List[str] = settings.get("gemini_models") or DEFAULT_GEMINI_MODELS

        return cls(
            provider=provider,
            openai_api_key=openai_key,
            gemini_api_key=gemini_key,
            openai_model=settings.get("openai_model", DEFAULT_OPENAI_MODEL),
            gemini_models=tuple(models),
            temperature=float(settings.get("temperature", 0.7)),
            max_tokens=int(settings.get("max_tokens", 4096)),
        )
