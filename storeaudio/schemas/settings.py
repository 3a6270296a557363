from typing import Any

from pydantic import ConfigDict, Field

from storeaudio.schemas.common import CamelModel


class PlayerSettings(CamelModel):
    """Organization defaults overlaid with store overrides.

    Known keys are typed; anything else rides along as an extra field so
    newer dashboards can add settings without a server release.
    """

    model_config = ConfigDict(extra="allow")

    default_volume: int | None = Field(None, ge=0, le=100)
    default_mood: str | None = None
    enable_weather: bool | None = None
    enable_ai_announcements: bool | None = Field(None, alias="enableAIAnnouncements")
    timezone: str | None = None
    language: str | None = None
    branded_voice: str | None = None
    is_kiosk_mode: bool | None = None
    screen_protected: bool | None = None


def normalize_settings(raw: dict[str, Any] | None) -> dict[str, Any]:
    """Validate a settings blob and respell known keys in their camelCase form."""
    return dump_settings(PlayerSettings.model_validate(raw or {}))


def merge_settings(
    organization_settings: dict[str, Any] | None,
    store_settings: dict[str, Any] | None,
) -> PlayerSettings:
    """Shallow merge; store keys win on collision.

    Both sides are normalized first so `default_volume` and `defaultVolume`
    count as the same key.
    """
    merged: dict[str, Any] = {}
    merged.update(normalize_settings(organization_settings))
    merged.update(normalize_settings(store_settings))
    return PlayerSettings.model_validate(merged)


def dump_settings(settings: PlayerSettings) -> dict[str, Any]:
    return settings.model_dump(by_alias=True, exclude_unset=True)
