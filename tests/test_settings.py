# tests/test_settings.py
import pytest
from pydantic import ValidationError

from storeaudio.schemas.settings import PlayerSettings, dump_settings, merge_settings, normalize_settings
from storeaudio.schemas.store import StoreCreateIn
from storeaudio.services.stores import create_store


def test_store_keys_win_on_collision():
    merged = merge_settings({"defaultVolume": 40, "language": "it"}, {"defaultVolume": 90})
    assert merged.default_volume == 90
    assert merged.language == "it"


def test_unknown_keys_ride_along():
    merged = merge_settings({"newDashboardFlag": "x"}, {"enableAIAnnouncements": True})
    assert dump_settings(merged) == {"newDashboardFlag": "x", "enableAIAnnouncements": True}


def test_missing_sides_merge_to_empty():
    assert dump_settings(merge_settings(None, None)) == {}


def test_known_keys_are_typed():
    with pytest.raises(ValidationError):
        PlayerSettings.model_validate({"defaultVolume": 150})


def test_store_wins_even_when_keys_are_spelled_differently():
    merged = dump_settings(merge_settings({"defaultVolume": 50}, {"default_volume": 80}))
    assert merged == {"defaultVolume": 80}


def test_normalize_respells_known_keys_only():
    assert normalize_settings({"is_kiosk_mode": True, "customFlag": 1}) == {"isKioskMode": True, "customFlag": 1}


def test_created_stores_keep_normalized_settings(db_session, organization):
    store = create_store(
        db_session,
        organization.id,
        StoreCreateIn(name="Torino", settings={"default_volume": 65, "enableAIAnnouncements": False}),
    )
    assert store.settings == {"defaultVolume": 65, "enableAIAnnouncements": False}
