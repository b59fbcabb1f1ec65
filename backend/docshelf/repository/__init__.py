from docshelf.repository.base import DocumentRepository
from docshelf.repository.factory import create_repository
from docshelf.repository.memory import InMemoryDocumentRepository

__all__ = ["DocumentRepository", "InMemoryDocumentRepository", "create_repository"]
