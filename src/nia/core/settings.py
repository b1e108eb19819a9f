"""Key/value application settings stored in the settings table"""
import json
import logging
from typing import Any, Dict, Mapping, Optional

from nia.core.db import Store
from nia.core.exception import ValidationError
from nia.core.type import DeviceSettings, OpenAISettings

logger = logging.getLogger(__name__)

MIC_KEY = "selectedMicId"
SPEAKER_KEY = "selectedSpeakerId"

# Stored key -> OpenAISettings field
_OPENAI_KEYS = {
    "apiKey": "api_key",
    "voice": "voice",
    "prompt": "prompt",
    "darkMode": "dark_mode",
    "model": "model",
}


def _encode(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


async def get_all_settings(store: Store) -> Dict[str, Optional[str]]:
    async with store.connection() as conn:
        result = await conn.execute("SELECT key, value FROM settings")
        rows = await result.fetchall()
        return {row["key"]: row["value"] for row in rows}


async def get_setting(store: Store, key: str) -> Optional[str]:
    async with store.connection() as conn:
        result = await conn.execute(
            "SELECT value FROM settings WHERE key = ?",
            (key,)
        )
        row = await result.fetchone()
        if row:
            return row["value"]
        return None


async def save_setting(store: Store, key: str, value: Any):
    """Insert or replace one setting; non-string values are stored as JSON"""
    async with store.connection() as conn:
        await conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) \
                ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, _encode(value))
        )


async def delete_setting(store: Store, key: str) -> bool:
    async with store.connection() as conn:
        cursor = await conn.execute(
            "DELETE FROM settings WHERE key = ?",
            (key,)
        )
        return cursor.rowcount > 0


async def save_settings(store: Store, settings: Mapping[str, Any]):
    for key, value in settings.items():
        if value is not None:
            await save_setting(store, key, value)


async def get_device_settings(store: Store) -> DeviceSettings:
    settings = await get_all_settings(store)
    return DeviceSettings(
        selected_mic_id=settings.get(MIC_KEY) or None,
        selected_speaker_id=settings.get(SPEAKER_KEY) or None,
    )


async def save_device_settings(store: Store, devices: DeviceSettings):
    """Store the selected devices; a device set to None is cleared"""
    for key, value in (
        (MIC_KEY, devices.selected_mic_id),
        (SPEAKER_KEY, devices.selected_speaker_id),
    ):
        if value is None:
            await delete_setting(store, key)
        else:
            await save_setting(store, key, value)


async def get_openai_settings(store: Store) -> Optional[OpenAISettings]:
    """
    Read the realtime model settings.

    Returns None until at least one of apiKey, voice, prompt or model has
    been saved. Missing values fall back to the OpenAISettings defaults.
    """
    settings = await get_all_settings(store)
    if not any(settings.get(key) for key in ("apiKey", "voice", "prompt", "model")):
        return None

    values: Dict[str, Any] = {}
    for key, field in _OPENAI_KEYS.items():
        raw = settings.get(key)
        if raw is None:
            continue
        if key == "darkMode":
            try:
                values[field] = bool(json.loads(raw))
            except json.JSONDecodeError:
                logger.error(f"Failed to parse setting {key}: {raw!r}")
            continue
        values[field] = raw
    return OpenAISettings(**values)


async def save_openai_settings(store: Store, settings: Mapping[str, Any]):
    """Save any subset of apiKey, voice, prompt, darkMode and model"""
    unknown = set(settings) - set(_OPENAI_KEYS)
    if unknown:
        raise ValidationError(f"Unknown OpenAI settings: {sorted(unknown)}")
    await save_settings(store, settings)
