"""Exception hierarchy for clipai."""


class ClipAIError(Exception):
    """Base exception for all clipai errors."""


class InvalidItemError(ClipAIError, ValueError):
    """Raised when a clipboard item's payload does not match its type."""


class StorageError(ClipAIError):
    """Raised when the persistent store fails at the SQL layer."""


class VectorExtensionError(StorageError):
    """Raised when the sqlite-vec extension cannot be loaded."""


class VectorSearchUnavailableError(StorageError):
    """Raised when semantic search is requested on a store without vector support."""


class EmbeddingError(ClipAIError):
    """Base exception for embedding provider failures."""


class EmbeddingNotConfiguredError(EmbeddingError):
    """Raised when no embedding API key is configured."""


class EmbeddingProviderError(EmbeddingError):
    """Raised when the remote embedding call fails or returns no vector."""
