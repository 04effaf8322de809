# qr_attendance/core/i18n.py
from typing import Callable, Dict
from functools import lru_cache
import json
from pathlib import Path


class I18nProvider:
    """Provides Portuguese/English messages for user-facing outcomes"""

    def __init__(self, default_language: str = 'pt'):
        self.translations: Dict[str, Dict[str, str]] = {}
        self.default_language = default_language
        self.supported_languages = {'pt', 'en'}
        self._load_translations()

    def _load_translations(self) -> None:
        """Load translations from the translations directory"""
        translations_dir = Path(__file__).parent / 'translations'
        if not translations_dir.exists():
            raise FileNotFoundError(f"Translations directory not found: {translations_dir}")

        for lang in self.supported_languages:
            file_path = translations_dir / f'{lang}.json'
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    self.translations[lang] = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in translation file {file_path}: {str(e)}")

    def get_translation(self, language: str = 'pt') -> Callable[..., str]:
        """Get translation function for Portuguese or English"""
        if language not in self.supported_languages:
            language = self.default_language

        translations = self.translations.get(language, self.translations[self.default_language])

        def translate(key: str, **kwargs) -> str:
            translation = translations.get(key)

            if translation is None:
                translation = self.translations[self.default_language].get(key, key)

            if kwargs:
                try:
                    return translation.format(**kwargs)
                except KeyError:
                    return translation

            return translation

        return translate


def parse_accept_language(header: str, default: str = 'pt') -> str:
    """Pick the first supported language from an Accept-Language header"""
    if not header:
        return default
    for part in header.split(','):
        code = part.split(';')[0].strip().lower()[:2]
        if code in i18n_provider.supported_languages:
            return code
    return default


# Singleton instance
i18n_provider = I18nProvider()


@lru_cache(maxsize=16)
def get_translation(language: str = 'pt') -> Callable[..., str]:
    """Get cached translation function"""
    return i18n_provider.get_translation(language)
