import hashlib
from enum import StrEnum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MigrationKind(StrEnum):
    UP = "up"


class Speaker(StrEnum):
    YOU = "You"
    AGENT = "Agent"


class Migration(BaseModel):
    """A forward-only schema change, identified by its version"""

    model_config = ConfigDict(frozen=True)

    version: int = Field(gt=0)
    description: str = Field(min_length=1)
    sql: str
    kind: MigrationKind = MigrationKind.UP

    @property
    def checksum(self) -> bytes:
        return hashlib.sha384(self.sql.encode("utf-8")).digest()

    def __str__(self):
        return f"{self.version}#{self.description}"


class AppliedMigration(BaseModel):
    version: int
    description: str
    checksum: bytes
    execution_time: int


class MigrationStatus(BaseModel):
    version: int
    description: str
    applied: bool
    installed_on: Optional[str] = None
    checksum_matches: Optional[bool] = None


_COUNTER_FIELDS = (
    "input_audio_tokens", "output_audio_tokens",
    "input_text_tokens", "output_text_tokens",
    "total_cost",
)


class NewSession(BaseModel):
    start_time: int
    end_time: int
    duration_seconds: int
    model: str
    input_audio_tokens: int = 0
    output_audio_tokens: int = 0
    input_text_tokens: int = 0
    output_text_tokens: int = 0
    total_cost: float = 0.0
    mic_device: Optional[str] = None
    speaker_device: Optional[str] = None


class Session(NewSession):
    id: int
    created_at: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def drop_null_counters(cls, data):
        # Token and cost columns have defaults but no NOT NULL
        if isinstance(data, dict):
            return {
                k: v for k, v in data.items()
                if v is not None or k not in _COUNTER_FIELDS
            }
        return data


class NewMessage(BaseModel):
    # Kept as plain text so the CHECK constraint remains the authority
    speaker: str
    text: str
    timestamp: int


class Message(NewMessage):
    id: int
    session_id: int
    created_at: Optional[int] = None


class SessionDetail(BaseModel):
    session: Session
    messages: List[Message]


class SessionStats(BaseModel):
    total_sessions: int = 0
    total_duration: int = 0
    total_cost: float = 0.0
    average_duration: float = 0.0
    total_messages: int = 0


class DeviceSettings(BaseModel):
    selected_mic_id: Optional[str] = None
    selected_speaker_id: Optional[str] = None


class OpenAISettings(BaseModel):
    api_key: str = ""
    voice: str = "alloy"
    prompt: Optional[str] = None
    dark_mode: bool = False
    model: str = "gpt-4o-realtime-preview"

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data):
        # Stored empty strings fall back to the defaults
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v not in (None, "")}
        return data
