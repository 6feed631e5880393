"""Helper modules for the certified translation quote application."""

__all__ = [
    "document_analysis",
    "document_processor",
    "file_naming",
    "languages",
    "ocr",
    "pricing",
]
