"""
Embedding manager: owns the active backend and the user's model preference.

The manager lazily builds the backend for the persisted ``ModelType``,
switches backends on request, and falls back to the lightweight backend when
the sentence encoder cannot be loaded. The fallback is recorded in
``ModelState`` so callers can see that the requested type did not take effect.
"""

import asyncio
import importlib.util
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from semantic_stash.config import PreferencesStore, StoreConfig
from semantic_stash.embeddings.lightweight import LightweightEmbedding
from semantic_stash.embeddings.protocol import TextEmbedding
from semantic_stash.errors import ModelLoadError, ModelNotInitializedError
from semantic_stash.models import ModelType

logger = logging.getLogger(__name__)

BackendFactory = Callable[[], TextEmbedding]

MODEL_DESCRIPTIONS = {
    ModelType.LIGHTWEIGHT: (
        "Fast, lightweight model built into the package. "
        "Good for basic keyword and simple semantic matching."
    ),
    ModelType.SENTENCE_ENCODER: (
        "Neural sentence encoder (downloads once). "
        "Best semantic understanding, handles complex queries."
    ),
}


class ModelState(BaseModel):
    """
    Requested vs. active backend.

    ``active`` is None until a backend has been loaded. When the requested
    backend failed to load, ``active`` is LIGHTWEIGHT and ``fallback_reason``
    explains why.
    """

    requested: ModelType
    active: Optional[ModelType] = None
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None


def default_backend_factories(config: Optional[StoreConfig] = None) -> Dict[ModelType, BackendFactory]:
    """Factories for the two built-in backends."""

    def sentence_encoder() -> TextEmbedding:
        from semantic_stash.embeddings.sentence_encoder import SentenceEncoderEmbedding

        if config is None:
            return SentenceEncoderEmbedding()
        return SentenceEncoderEmbedding(
            model_name=config.sentence_model_name,
            revision=config.sentence_model_revision,
            device=config.device,
        )

    return {
        ModelType.LIGHTWEIGHT: LightweightEmbedding,
        ModelType.SENTENCE_ENCODER: sentence_encoder,
    }


class EmbeddingManager:
    """
    Owns which embedding backend is active.

    Example:
        >>> manager = EmbeddingManager(PreferencesStore(path))
        >>> await manager.ensure_initialized()
        >>> vector = await manager.generate_embedding("GitHub homepage")
        >>> len(vector) == manager.current_dimensions
        True
    """

    def __init__(
        self,
        preferences_store: PreferencesStore,
        backend_factories: Optional[Dict[ModelType, BackendFactory]] = None,
        load_timeout: float = 120.0,
        eager_load: bool = True,
    ):
        """
        Initialize the manager from persisted preferences.

        Args:
            preferences_store: Where the selected model type is persisted
            backend_factories: Constructors per model type (default: built-ins)
            load_timeout: Seconds allowed for a non-lightweight backend to load
            eager_load: Load a newly selected backend immediately instead of
                on first use
        """
        self._preferences_store = preferences_store
        self._preferences = preferences_store.load()
        self._factories = backend_factories or default_backend_factories()
        self.load_timeout = load_timeout
        self.eager_load = eager_load

        self._backend: Optional[TextEmbedding] = None
        self._state = ModelState(requested=self._preferences.model_type)
        self._lock = asyncio.Lock()

        logger.info(f"EmbeddingManager initialized (preferred model={self._state.requested.value})")

    @classmethod
    def from_config(cls, config: StoreConfig) -> "EmbeddingManager":
        return cls(
            PreferencesStore(config.resolved_preferences_path),
            backend_factories=default_backend_factories(config),
            load_timeout=config.model_load_timeout,
            eager_load=config.eager_load,
        )

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def backend(self) -> Optional[TextEmbedding]:
        return self._backend

    @property
    def is_ready(self) -> bool:
        return self._backend is not None

    @property
    def current_model_type(self) -> ModelType:
        """The effective model type; reflects a fallback once one happened."""
        return self._state.active or self._state.requested

    @property
    def current_model_id(self) -> str:
        return self._require_backend().model_id

    @property
    def current_dimensions(self) -> int:
        return self._require_backend().dimension

    def _require_backend(self) -> TextEmbedding:
        if self._backend is None:
            raise ModelNotInitializedError(
                "No embedding model initialized. Call set_model_type() or ensure_initialized() first."
            )
        return self._backend

    async def ensure_initialized(self) -> None:
        """Load the preferred backend if none is loaded yet."""
        if self._backend is not None:
            return
        async with self._lock:
            if self._backend is None:
                await self._activate(self._state.requested)

    async def set_model_type(self, model_type: ModelType | str) -> ModelState:
        """
        Select the embedding backend.

        A no-op when ``model_type`` is already requested and active. Otherwise the
        preference is persisted, the current backend discarded, and the new
        one loaded (immediately when ``eager_load`` is set).

        Returns:
            The resulting state; check ``active`` for the effective type
        """
        model_type = ModelType(model_type)

        async with self._lock:
            if (
                self._backend is not None
                and self._state.requested == model_type
                and self._state.active == model_type
            ):
                logger.debug(f"Model type {model_type.value} already active")
                return self._state

            self._preferences.model_type = model_type
            self._preferences_store.save(self._preferences)

            self._backend = None
            self._state = ModelState(requested=model_type)
            logger.info(f"Model type set to {model_type.value}")

            if self.eager_load:
                await self._activate(model_type)

        return self._state

    async def _activate(self, model_type: ModelType) -> None:
        if model_type not in self._factories:
            raise ModelLoadError(f"Unknown model type: {model_type}")

        try:
            self._backend = await self._load(model_type)
            self._state = ModelState(requested=model_type, active=model_type)
            logger.info(
                f"Embedding backend ready: {self._backend.model_id} "
                f"({self._backend.dimension} dimensions)"
            )
            return
        except Exception as e:
            if model_type == ModelType.LIGHTWEIGHT:
                raise ModelLoadError(f"Failed to load lightweight backend: {e}") from e
            reason = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            logger.warning(
                f"Failed to load {model_type.value} backend, falling back to lightweight: {reason}"
            )

        self._backend = self._factories[ModelType.LIGHTWEIGHT]()
        self._state = ModelState(
            requested=model_type, active=ModelType.LIGHTWEIGHT, fallback_reason=reason
        )

    async def _load(self, model_type: ModelType) -> TextEmbedding:
        factory = self._factories[model_type]
        if model_type == ModelType.LIGHTWEIGHT:
            return factory()
        return await asyncio.wait_for(asyncio.to_thread(factory), timeout=self.load_timeout)

    async def generate_embedding(self, text: str) -> List[float]:
        """
        Embed a text with the active backend.

        Raises:
            ModelNotInitializedError: If no backend has been loaded
        """
        backend = self._require_backend()
        return await backend.embed(text)

    def can_load_heavy_backend(self) -> bool:
        """Whether the sentence-encoder dependencies are importable."""
        return importlib.util.find_spec("sentence_transformers") is not None

    def model_info(self) -> Dict[str, Any]:
        model_type = self.current_model_type
        return {
            "type": model_type.value,
            "requested": self._state.requested.value,
            "is_ready": self.is_ready,
            "model_id": self._backend.model_id if self._backend else None,
            "dimension": self._backend.dimension if self._backend else None,
            "fallback_reason": self._state.fallback_reason,
            "description": MODEL_DESCRIPTIONS.get(model_type, "Unknown model"),
        }
