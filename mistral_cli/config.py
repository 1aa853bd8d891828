"""Configuration management for the Mistral CLI."""

from __future__ import annotations

import os
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .llm.models import Endpoint

DEFAULT_CONFIG_PATH = "config.yaml"
ENV_PREFIX = "APP_"

MISTRAL_URL = "https://api.mistral.ai/v1/chat/completions"
CODESTRAL_URL = "https://codestral.mistral.ai/v1/chat/completions"
MISTRAL_MODEL = "mistral-large-latest"
CODESTRAL_MODEL = "codestral-latest"

# Characters of an API key left readable in views
MASK_VISIBLE_CHARS = 5


class AppSettings(BaseModel):
    """Validated settings; unknown keys are ignored."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    mistral_api_key: str
    codestral_api_key: str
    debug: bool = False
    mistral_url: str = MISTRAL_URL
    codestral_url: str = CODESTRAL_URL
    mistral_model: str = MISTRAL_MODEL
    codestral_model: str = CODESTRAL_MODEL
    timeout: float = Field(default=30.0, gt=0)


class Configuration:
    """Manages configuration file and environment variables for the CLI."""

    def __init__(self, file_path: str = DEFAULT_CONFIG_PATH) -> None:
        """Initialize configuration from YAML and environment variables.

        Raises:
            FileNotFoundError: If the configuration file doesn't exist.
            ValueError: If the file is not a YAML mapping or fails validation.
        """
        self.load_env()  # Load .env for API keys
        self.file_path = file_path
        self._settings = self._load_settings(file_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from a .env file in the working directory."""
        load_dotenv(find_dotenv(usecwd=True))

    @staticmethod
    def env_overrides() -> dict[str, str]:
        """Collect ``APP_*`` environment variables as lower-case setting names."""
        return {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX) and len(key) > len(ENV_PREFIX)
        }

    def _load_settings(self, file_path: str) -> AppSettings:
        with open(file_path) as file:
            raw = yaml.safe_load(file)
        if not isinstance(raw, dict):
            raise ValueError(
                f"Config file must be YAML dict, got {type(raw)}"
            )

        merged: dict[str, Any] = {**raw, **self.env_overrides()}
        try:
            return AppSettings.model_validate(merged)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration in {file_path}: {e}") from e

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def debug(self) -> bool:
        return self._settings.debug

    @property
    def timeout(self) -> float:
        return self._settings.timeout

    def mistral_endpoint(self) -> Endpoint:
        """General chat endpoint."""
        return Endpoint(
            name="Mistral",
            url=self._settings.mistral_url,
            model=self._settings.mistral_model,
            api_key=self._settings.mistral_api_key,
        )

    def codestral_endpoint(self) -> Endpoint:
        """Code-analysis endpoint."""
        return Endpoint(
            name="Codestral",
            url=self._settings.codestral_url,
            model=self._settings.codestral_model,
            api_key=self._settings.codestral_api_key,
        )

    def endpoint_for_prompt(self, prompt: str) -> Endpoint:
        """Route prompts mentioning code to Codestral, everything else to Mistral."""
        if "code" in prompt.lower():
            return self.codestral_endpoint()
        return self.mistral_endpoint()

    @staticmethod
    def mask_key(key: str) -> str:
        """Show only the first few characters of an API key."""
        if len(key) > MASK_VISIBLE_CHARS:
            hidden = len(key) - MASK_VISIBLE_CHARS
            return key[:MASK_VISIBLE_CHARS] + "*" * hidden
        return key

    def view_lines(self) -> list[str]:
        """Human-readable summary with masked keys."""
        return [
            "Current Configuration:",
            f"Mistral API Key: {self.mask_key(self._settings.mistral_api_key)}",
            f"Codestral API Key: {self.mask_key(self._settings.codestral_api_key)}",
            f"Debug Mode: {str(self._settings.debug).lower()}",
        ]

    @staticmethod
    def generate_sample_config(file_path: str = DEFAULT_CONFIG_PATH) -> None:
        """Write a configuration file with placeholder keys.

        Args:
            file_path: Destination; overwritten if it exists.
        """
        sample = {
            "mistral_api_key": "your_mistral_api_key",
            "codestral_api_key": "your_codestral_api_key",
            "debug": False,
        }
        with open(file_path, "w") as file:
            yaml.safe_dump(sample, file, sort_keys=False)
