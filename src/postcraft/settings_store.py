from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from .config import DEFAULT_CATEGORIES, LEGACY_CATEGORIES
from .errors import ConfigurationError
from .models import CATEGORY_SEPARATOR, PipelineSettings, StructuredPost

log = structlog.get_logger()


def mask_secret(value: str | None) -> str | None:
    if not value:
        return value
    if len(value) <= 14:
        return "..." + value[-4:]
    return f"{value[:10]}...{value[-4:]}"


class EncryptedSettingsStore:
    """
    Key-value settings (API key, model, categories) encrypted at rest.

    Stores ONE Fernet token at `path` holding a JSON object.
    """

    def __init__(self, path: str, fernet_key: str):
        self.path = Path(path)
        self._fernet = Fernet(fernet_key.encode("utf-8"))

    def exists(self) -> bool:
        return self.path.exists()

    def _read(self) -> dict[str, Any]:
        if not self.exists():
            return {}
        try:
            raw = self._fernet.decrypt(self.path.read_bytes())
        except InvalidToken as e:
            raise ConfigurationError("Failed to decrypt settings (wrong key or corrupted file).") from e
        payload = json.loads(raw.decode("utf-8"))
        if not isinstance(payload, dict):
            raise ConfigurationError("Settings payload must be a JSON object.")
        return payload

    def _write(self, payload: dict[str, Any]) -> None:
        raw = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.path.write_bytes(self._fernet.encrypt(raw))

    def load_settings(self) -> PipelineSettings:
        payload = self._read()
        categories = payload.get("categories")
        if not isinstance(categories, list):
            categories = list(DEFAULT_CATEGORIES)
        try:
            return PipelineSettings(api_key=payload.get("apiKey"), model=payload.get("model"), categories=categories)
        except ValidationError as e:
            raise ConfigurationError(f"Stored settings are invalid: {e}") from e

    def save_settings(self, settings: PipelineSettings) -> None:
        payload = self._read()
        payload.update(settings.model_dump(by_alias=True, exclude_none=True))
        self._write(payload)

    def _categories(self, payload: dict[str, Any]) -> list[str]:
        categories = payload.get("categories")
        return list(categories) if isinstance(categories, list) else []

    def add_category(self, name: str) -> bool:
        name = name.strip()
        if not name:
            raise ConfigurationError("Category name must be non-empty.")
        if CATEGORY_SEPARATOR in name:
            raise ConfigurationError(f"Category name must not contain {CATEGORY_SEPARATOR!r}.")
        payload = self._read()
        categories = self._categories(payload)
        if name in categories:
            return False
        categories.append(name)
        payload["categories"] = categories
        self._write(payload)
        return True

    def remove_category(self, name: str) -> bool:
        payload = self._read()
        categories = self._categories(payload)
        if name not in categories:
            return False
        payload["categories"] = [c for c in categories if c != name]
        self._write(payload)
        return True

    def reset_categories(self) -> list[str]:
        payload = self._read()
        payload["categories"] = list(DEFAULT_CATEGORIES)
        self._write(payload)
        return list(DEFAULT_CATEGORIES)

    def migrate_categories(self) -> bool:
        payload = self._read()
        categories = self._categories(payload)
        if categories and not any(c in LEGACY_CATEGORIES for c in categories):
            return False
        payload["categories"] = list(DEFAULT_CATEGORIES)
        self._write(payload)
        log.info("categories_migrated", previous=len(categories))
        return True

    def accept_post(self, post: StructuredPost) -> StructuredPost:
        """Record an approved new category so later prompts offer it."""
        if post.is_new_category:
            self.add_category(post.category)
        return post

    def debug_view(self) -> dict[str, Any]:
        payload = self._read()
        if "apiKey" in payload:
            payload["apiKey"] = mask_secret(payload["apiKey"])
        return payload
