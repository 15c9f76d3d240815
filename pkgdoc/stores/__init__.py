"""In-memory stores for built documentation."""

from .doc_cache import DocumentationCache

__all__ = ["DocumentationCache"]
