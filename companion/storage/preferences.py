"""
Preference store for display, contrast, voice and language settings.

Same load-once / update / persist-on-every-change pattern as the record store,
applied to a single fixed-shape record. Each setter changes one field and then
persists the whole record.
"""

from typing import Any

import structlog

from companion.domain.models import FontSize, PreferenceSet
from companion.storage.base import BackgroundWriter, encode_json, read_json
from companion.storage.kv import KeyValueStore

logger = structlog.get_logger(__name__)

ACCESSIBILITY_SETTINGS_KEY = "accessibility_settings"
LANGUAGE_SETTINGS_KEY = "language_settings"


class PreferenceStore:
    """Holds the current PreferenceSet; last write wins."""

    def __init__(self, backend: KeyValueStore, defaults: PreferenceSet | None = None) -> None:
        self.defaults = defaults or PreferenceSet()
        self.logger = logger.bind(component="preference_store")
        self._backend = backend
        self._writer = BackgroundWriter(backend, component="preference_store_writer")
        self._preferences = self.defaults

    @property
    def preferences(self) -> PreferenceSet:
        return self._preferences

    async def load(self) -> None:
        """Read persisted settings, falling back to defaults field by field."""
        accessibility = await read_json(self._backend, ACCESSIBILITY_SETTINGS_KEY, self.logger)
        language = await read_json(self._backend, LANGUAGE_SETTINGS_KEY, self.logger)

        changes: dict[str, Any] = {}
        if isinstance(accessibility, dict):
            changes["font_size"] = self._parse_font_size(accessibility.get("fontSize"))
            changes["high_contrast"] = bool(accessibility.get("highContrast") or False)
            changes["screen_reader"] = bool(accessibility.get("screenReader") or False)
        elif accessibility is not None:
            self.logger.warning("stored_data_invalid", key=ACCESSIBILITY_SETTINGS_KEY)

        if isinstance(language, dict):
            stored_language = language.get("language")
            changes["language"] = (
                stored_language
                if isinstance(stored_language, str) and stored_language
                else self.defaults.language
            )
            # Voice stays on unless it was explicitly switched off
            changes["voice_enabled"] = language.get("voiceEnabled") is not False
        elif language is not None:
            self.logger.warning("stored_data_invalid", key=LANGUAGE_SETTINGS_KEY)

        self._preferences = self.defaults.model_copy(update=changes)
        self.logger.info("preferences_loaded", **self._preferences.model_dump(mode="json"))

    def set_font_size(self, size: FontSize | str) -> PreferenceSet:
        return self._update("font_size", FontSize(size))

    def set_high_contrast(self, enabled: bool) -> PreferenceSet:
        return self._update("high_contrast", bool(enabled))

    def set_screen_reader(self, enabled: bool) -> PreferenceSet:
        return self._update("screen_reader", bool(enabled))

    def set_language(self, language: str) -> PreferenceSet:
        if not isinstance(language, str) or not language.strip():
            raise ValueError("language must be a non-empty language code")
        return self._update("language", language.strip())

    def set_voice_enabled(self, enabled: bool) -> PreferenceSet:
        return self._update("voice_enabled", bool(enabled))

    async def flush(self) -> None:
        await self._writer.flush()

    def _update(self, field: str, value: Any) -> PreferenceSet:
        self._preferences = self._preferences.model_copy(update={field: value})
        self._writer.write(
            {
                ACCESSIBILITY_SETTINGS_KEY: encode_json(self._preferences.accessibility_payload()),
                LANGUAGE_SETTINGS_KEY: encode_json(self._preferences.language_payload()),
            }
        )
        self.logger.info("preference_updated", field=field, value=getattr(value, "value", value))
        return self._preferences

    def _parse_font_size(self, raw: Any) -> FontSize:
        if not raw:
            return self.defaults.font_size
        try:
            return FontSize(raw)
        except ValueError:
            self.logger.warning("unknown_font_size_ignored", font_size=raw)
            return self.defaults.font_size
