"""
Configuration and persisted user preferences.

``StoreConfig`` describes where and how the store lives on disk.
``Preferences`` is the small JSON file remembering which embedding backend
the user picked.
"""

import json
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from semantic_stash.models import ModelType

logger = logging.getLogger(__name__)

ENV_PREFIX = "SEMANTIC_STASH_"

DEFAULT_SENTENCE_MODEL = "sentence-transformers/distiluse-base-multilingual-cased-v2"


class StoreConfig(BaseModel):
    """Settings for an item store."""

    storage_path: Path = Field(..., description="Directory holding the embedded store")
    preferences_path: Optional[Path] = Field(
        None, description="Preferences JSON file (default: <storage_path>/preferences.json)"
    )
    vector_backend: Literal["sqlite", "qdrant", "memory"] = Field(
        "sqlite", description="Where embedding rows are kept"
    )
    sentence_model_name: str = Field(
        DEFAULT_SENTENCE_MODEL, description="HuggingFace id of the sentence encoder"
    )
    sentence_model_revision: Optional[str] = Field(
        None, description="Pinned model revision, recorded in the embedding tag"
    )
    device: Optional[str] = Field(None, description="Device for the sentence encoder")
    model_load_timeout: float = Field(
        120.0, gt=0, description="Seconds to wait for the sentence encoder to load"
    )
    eager_load: bool = Field(
        True, description="Load the backend as soon as the model type changes"
    )
    search_limit: int = Field(10, ge=1, description="Maximum search results / vector top-K")
    recent_limit: int = Field(5, ge=1, description="Default size of the recent items list")

    @property
    def resolved_preferences_path(self) -> Path:
        return self.preferences_path or self.storage_path / "preferences.json"

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.storage_path / 'stash.db'}"

    @property
    def qdrant_path(self) -> Path:
        return self.storage_path / "vectors"

    @classmethod
    def from_env(cls, **overrides) -> "StoreConfig":
        """
        Build a config from ``SEMANTIC_STASH_*`` environment variables.

        Recognised: STORAGE_PATH, PREFERENCES_PATH, VECTOR_BACKEND,
        SENTENCE_MODEL, SENTENCE_MODEL_REVISION, DEVICE, MODEL_LOAD_TIMEOUT.
        Keyword overrides win over the environment.
        """
        env_fields = {
            "storage_path": "STORAGE_PATH",
            "preferences_path": "PREFERENCES_PATH",
            "vector_backend": "VECTOR_BACKEND",
            "sentence_model_name": "SENTENCE_MODEL",
            "sentence_model_revision": "SENTENCE_MODEL_REVISION",
            "device": "DEVICE",
            "model_load_timeout": "MODEL_LOAD_TIMEOUT",
        }
        values = {}
        for field_name, env_name in env_fields.items():
            value = os.getenv(ENV_PREFIX + env_name)
            if value:
                values[field_name] = value
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_file(cls, config_path: Path, **overrides) -> "StoreConfig":
        """Load the host application's JSON config (``storage_path`` key)."""
        data = json.loads(Path(config_path).read_text(encoding="utf-8"))
        data.update(overrides)
        return cls(**data)


class Preferences(BaseModel):
    """Persisted user preferences."""

    model_config = ConfigDict(populate_by_name=True)

    model_type: ModelType = Field(ModelType.LIGHTWEIGHT, alias="modelType")

    @field_validator("model_type", mode="before")
    @classmethod
    def _legacy_model_type(cls, value):
        # Files written before the sentence encoder replaced TensorFlow
        if value == "tensorflow":
            return ModelType.SENTENCE_ENCODER
        return value


class PreferencesStore:
    """Reads and writes ``Preferences`` as a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Preferences:
        if not self.path.exists():
            return Preferences()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Preferences.model_validate(data)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load preferences from {self.path}: {e}")
            return Preferences()

    def save(self, preferences: Preferences) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(preferences.model_dump(mode="json", by_alias=True), indent=2),
                encoding="utf-8",
            )
            logger.debug(f"Saved preferences to {self.path}")
        except OSError as e:
            logger.warning(f"Failed to save preferences to {self.path}: {e}")
