"""Stored client documents."""

from .document_models import Document, DocumentCategory

__all__ = ["Document", "DocumentCategory"]
