
from enum import Enum
from PySide6.QtCore import QLocale, QObject
from qfluentwidgets import (
    QConfig,
    qconfig,
    ConfigItem,
    RangeConfigItem,
    RangeValidator,
    OptionsConfigItem,
    OptionsValidator,
    EnumSerializer,
    Theme
)

from loguru import logger
from pathlib import Path
from typing import Dict
import json

from farmmap import __version__

class Language(Enum):
    """Language enumeration."""
    AUTO = "Auto"
    ENGLISH = "en_US"
    ARABIC = "ar_AE"

class Config(QConfig):
    """
    Configuration for the application.
    """

    # Theme Mode: Light, Dark, Auto
    themeMode = OptionsConfigItem(
        "General", "ThemeMode", Theme.AUTO, OptionsValidator(Theme), EnumSerializer(Theme), restart=False
    )

    # Language: Auto, English, Arabic
    language = OptionsConfigItem(
        "General", "Language", Language.AUTO, OptionsValidator(Language), EnumSerializer(Language), restart=True
    )

    # Overview map center (UAE) and zoom levels
    centerLat = ConfigItem("Map", "CenterLat", 25.403027, RangeValidator(-90.0, 90.0))
    centerLng = ConfigItem("Map", "CenterLng", 55.523542, RangeValidator(-180.0, 180.0))
    overviewZoom = RangeConfigItem("Map", "OverviewZoom", 9, RangeValidator(1, 22))
    drawZoom = RangeConfigItem("Map", "DrawZoom", 20, RangeValidator(1, 22))
    fitPadding = RangeConfigItem("Map", "FitPadding", 50, RangeValidator(0, 200))

    # Marker clustering
    clusterRadius = RangeConfigItem("Cluster", "Radius", 150, RangeValidator(10, 400))
    clusterMaxZoom = RangeConfigItem("Cluster", "MaxZoom", 16, RangeValidator(1, 22))
    clusterLoadTimeoutMs = RangeConfigItem(
        "Cluster", "LoadTimeoutMs", 5000, RangeValidator(500, 30000)
    )
    clusterInfoDelayMs = RangeConfigItem(
        "Cluster", "InfoDelayMs", 50, RangeValidator(0, 1000)
    )


class Translator(QObject):
    """
    Manages application translations.
    """

    def __init__(self):
        super().__init__()
        logger.debug(f"Requested language from config: {cfg.get(cfg.language)}")
        self._current_language = self.get_language(cfg.get(cfg.language))
        logger.info(f"Current language from config: {self._current_language}")
        self._translations: Dict[Language, Dict[str, str]] = {}
        self._load_translations()

    def _load_translations(self):
        """Load all translation files from the resource directory."""
        locales_dir = Path(__file__).parent / "resource" / "i18n"
        if not locales_dir.exists():
            logger.error(f"Locales directory not found: {locales_dir}")
            return

        for file_path in locales_dir.glob("*.json"):
            lang_code = file_path.stem
            try:
                # e.g., 'ar_AE' -> Language.ARABIC
                lang = Language(lang_code)
                with open(file_path, "r", encoding="utf-8") as f:
                    self._translations[lang] = json.load(f)
                logger.debug(f"Loaded translations for: {lang.name}")
            except Exception as e:
                logger.error(f"Failed to load translation {file_path}: {e}")

    def get_language(self, language: Language) -> Language:
        """Resolve ``Language.AUTO`` against the system locale."""
        if language == Language.AUTO:
            locale = QLocale.system().name()  # e.g., en_US, ar_AE
            if locale.startswith("ar"):
                return Language.ARABIC
            return Language.ENGLISH
        if language == Language.ARABIC:
            return Language.ARABIC
        return Language.ENGLISH

    @property
    def language(self) -> Language:
        return self._current_language

    def set_language(self, language: Language):
        """
        Set the current language.

        Parameters
        ----------
        language : Language
            Target language; ``Language.AUTO`` follows the system locale.
        """
        language = self.get_language(language)
        if language == self._current_language:
            return

        self._current_language = language
        logger.info(f"Language switched to: {language}")

    def tr(self, key: str) -> str:
        """
        Get translated string for the given key.

        If translation is missing for current language, falls back to English,
        then to the key itself.
        """
        lang_dict = self._translations.get(self._current_language, {})

        result = lang_dict.get(key)
        if result is not None:
            return result

        if self._current_language != Language.ENGLISH:
            en_dict = self._translations.get(Language.ENGLISH, {})
            result = en_dict.get(key)
            if result is not None:
                return result

        return key

YEAR = 2026
VERSION = __version__

cfg = Config()
qconfig.load('config.json', cfg)

# Global instance
translator = Translator()

def tr(key: str) -> str:
    """Helper function to translate a key using the global translator."""
    return translator.tr(key)
