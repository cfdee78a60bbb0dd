"""Document model, builder and serialization."""

from .document import Document, DocumentInput, DocumentType, SCHEMA_VERSIONS
from .builder import DocumentBuilder

__all__ = ['Document', 'DocumentInput', 'DocumentType', 'SCHEMA_VERSIONS', 'DocumentBuilder']
