import logging
from collections.abc import Callable

import openai

from clipai.config import EMBEDDING_MAX_RETRIES, EMBEDDING_MODEL, EMBEDDING_TIMEOUT
from clipai.errors import EmbeddingNotConfiguredError, EmbeddingProviderError

logger = logging.getLogger(__name__)


class EmbeddingProvider:
    """Turns text into vectors with the OpenAI embeddings API.

    The client is built lazily from whatever key ``api_key_source`` returns, and
    rebuilt after ``refresh_api_key()``.
    """

    def __init__(
        self,
        api_key_source: Callable[[], str | None],
        model: str = EMBEDDING_MODEL,
        timeout: float = EMBEDDING_TIMEOUT,
    ):
        self._api_key_source = api_key_source
        self.model = model
        self._timeout = timeout
        self._client: openai.OpenAI | None = None
        self._client_key: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key_source())

    def _get_client(self) -> openai.OpenAI:
        api_key = self._api_key_source()
        if not api_key:
            self._client = None
            raise EmbeddingNotConfiguredError("OpenAI API key not configured. Add it in settings.")
        if self._client is None or api_key != self._client_key:
            self._client_key = api_key
            self._client = openai.OpenAI(
                api_key=api_key,
                timeout=self._timeout,
                max_retries=EMBEDDING_MAX_RETRIES,
            )
            logger.info("OpenAI client initialized")
        return self._client

    def get_embedding(self, text: str) -> list[float]:
        client = self._get_client()
        try:
            response = client.embeddings.create(model=self.model, input=text)
        except openai.OpenAIError as e:
            raise EmbeddingProviderError(f"Embedding request failed: {e}") from e

        if not response.data or not response.data[0].embedding:
            raise EmbeddingProviderError("No embedding data received from OpenAI")
        return list(response.data[0].embedding)

    def refresh_api_key(self) -> None:
        self._client = None
        if self.is_configured:
            logger.info("OpenAI API key updated")
        else:
            logger.warning("OpenAI API key not configured")
