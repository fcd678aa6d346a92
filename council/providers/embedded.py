"""In-process text generation with a lazily loaded transformers pipeline."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from council.providers.base import GeneratorError, TextGenerator

logger = logging.getLogger(__name__)

# Poll interval while another caller is loading the model.
_LOAD_POLL_SEC = 0.1
_DEFAULT_MAX_TOKENS = 256
_DEFAULT_TEMPERATURE = 0.3

PipelineLoader = Callable[[str], Any]


def load_transformers_pipeline(model_id: str) -> Any:
    """Build a CPU text-generation pipeline. Blocking; run off the event loop."""
    from transformers import pipeline

    return pipeline("text-generation", model=model_id, device="cpu")


class EmbeddedGenerator(TextGenerator):
    """Process-wide embedded model.

    The model is loaded on first use. A load-in-progress flag keeps a second
    caller from starting a duplicate load; it waits for the first instead.
    ``dispose()`` drops the model and any recorded load error so a later call
    can load again. A load still in flight at that point is discarded.
    """

    def __init__(
        self,
        model_id: str,
        loader: PipelineLoader = load_transformers_pipeline,
        temperature: float = _DEFAULT_TEMPERATURE,
    ) -> None:
        self._model_id = model_id
        self._loader = loader
        self._temperature = temperature
        self._pipeline: Any = None
        self._load_error: GeneratorError | None = None
        self._is_loading = False
        self._generation = 0

    def name(self) -> str:
        return "embedded"

    def is_loaded(self) -> bool:
        return self._pipeline is not None

    def has_error(self) -> bool:
        return self._load_error is not None

    def is_available(self) -> bool:
        return not self.has_error()

    async def ensure_loaded(self) -> None:
        """Load the model unless it is loaded already or a load is in flight."""
        if self._pipeline is not None:
            return
        if self._load_error is not None:
            raise self._load_error

        if self._is_loading:
            while self._is_loading and self._pipeline is None and self._load_error is None:
                await asyncio.sleep(_LOAD_POLL_SEC)
            if self._pipeline is not None:
                return
            if self._load_error is not None:
                raise self._load_error

        generation = self._generation
        self._is_loading = True
        try:
            logger.info("Loading embedded model: %s", self._model_id)
            pipeline = await asyncio.to_thread(self._loader, self._model_id)
        except Exception as exc:
            error = GeneratorError(self.name(), f"failed to load {self._model_id}: {exc}")
            logger.warning("Embedded model load failed: %s", exc)
            if generation == self._generation:
                self._load_error = error
            raise error from exc
        finally:
            if generation == self._generation:
                self._is_loading = False

        if generation != self._generation:
            # dispose() ran while the load was in flight.
            logger.info("Embedded model load finished after dispose, discarding it")
            raise GeneratorError(self.name(), "model was disposed while loading")
        self._pipeline = pipeline
        logger.info("Embedded model loaded")

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        await self.ensure_loaded()
        try:
            result = await asyncio.to_thread(
                self._pipeline,
                prompt,
                max_new_tokens=max_tokens or _DEFAULT_MAX_TOKENS,
                temperature=self._temperature,
                do_sample=self._temperature > 0,
                return_full_text=False,
            )
        except Exception as exc:
            raise GeneratorError(self.name(), f"generation failed: {exc}") from exc

        generated = result[0].get("generated_text", "") if result else ""
        logger.debug("Embedded model generated %d chars", len(generated))
        return str(generated).strip()

    def dispose(self) -> None:
        """Release the model. Safe to call repeatedly."""
        self._generation += 1
        self._pipeline = None
        self._load_error = None
        self._is_loading = False
        logger.info("Embedded model disposed")
