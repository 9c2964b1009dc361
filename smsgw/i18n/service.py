"""File-based i18n helper with in-memory caching."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


class I18nService:
    def __init__(self, *, locales_path: str | Path | None = None, default_locale: str = "en") -> None:
        self.locales_path = Path(locales_path or Path(__file__).with_name("locales"))
        self.default_locale = default_locale
        self._tables: dict[str, dict[str, str]] = {}

    def gettext(self, key: str, *, locale: str | None = None, **kwargs: Any) -> str:
        loc = self._normalize(locale or self.default_locale)
        text = self._lookup(loc, key)
        if text is None and loc != self.default_locale:
            text = self._lookup(self.default_locale, key)
        if text is None:
            text = key
        return text.format(**kwargs) if kwargs else text

    @staticmethod
    def _normalize(locale: str) -> str:
        # Telegram sends tags such as "pt-br"
        return locale.lower().replace("_", "-").split("-", 1)[0]

    def _load_locale(self, locale: str) -> dict[str, str]:
        if locale not in self._tables:
            file_path = self.locales_path / f"{locale}.json"
            if file_path.exists():
                with file_path.open("r", encoding="utf-8") as fp:
                    self._tables[locale] = json.load(fp)
            else:
                self._tables[locale] = {}
        return self._tables[locale]

    def _lookup(self, locale: str, key: str) -> str | None:
        return self._load_locale(locale).get(key)


__all__ = ["I18nService"]
