from apotek.models.document import Document

__all__ = ["Document"]
