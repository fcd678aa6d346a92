"""Abstract base for generative backends used by the pre-pass and synthesis."""

from abc import ABC, abstractmethod


class GeneratorError(Exception):
    """Raised when a generative backend call fails."""

    def __init__(self, backend: str, message: str) -> None:
        self.backend = backend
        super().__init__(f"[{backend}] {message}")


class TextGenerator(ABC):
    """Abstract base for all text-generation backends."""

    @abstractmethod
    def name(self) -> str:
        """Return the short backend name (e.g. 'embedded', 'ollama')."""
        ...

    def is_available(self) -> bool:
        """Return False when the backend is known to be unusable."""
        return True

    @abstractmethod
    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Generate a completion for the given prompt.

        Args:
            prompt: The full prompt text to send.
            max_tokens: Upper bound on generated tokens; backend default if None.

        Returns:
            The generated text, stripped.

        Raises:
            GeneratorError: On load failure, transport failure, or invalid response.
        """
        ...
