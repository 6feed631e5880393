"""
Quote request models.

A QuoteRequest is what the visitor typed into the form (or posted to the
JSON API). It is mutable while intake validates and stores it; once the
files are in storage, freeze() produces the read-only snapshot handed to
the job thread.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any, List, Tuple

from .document import StoredFile


@dataclass
class QuoteRequest:
    """
    Customer input for one quote.

    Lifecycle:
        1. Built from the form / JSON body and validated
        2. Persisted as a ``quotes`` row (gets ``quote_id``)
        3. Files uploaded to storage and appended to ``files``
        4. Frozen for the job thread
    """

    name: str = ""
    """Customer full name."""

    email: str = ""
    """Customer email, where the quote and receipt are sent."""

    phone: str = ""
    """Optional phone number."""

    source_language: str = ""
    """Language of the documents (e.g. 'Spanish')."""

    target_language: str = ""
    """Language to translate into (e.g. 'English')."""

    intended_use: str = ""
    """What the translation is for; selects the certification (e.g. 'USCIS')."""

    quote_id: str = ""
    """Assigned by the quote store, e.g. 'CS00042'."""

    files: List[StoredFile] = field(default_factory=list)
    """Uploaded files, in upload order."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for session storage."""
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "source_language": self.source_language,
            "target_language": self.target_language,
            "intended_use": self.intended_use,
            "quote_id": self.quote_id,
            "files": [f.to_dict() for f in self.files],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuoteRequest":
        """
        Create from a dictionary.

        Accepts both snake_case keys (session) and the camelCase keys the
        JSON API documents (``fullName``, ``sourceLanguage``, ...).
        """
        def pick(*keys: str) -> str:
            for key in keys:
                value = data.get(key)
                if value:
                    return str(value)
            return ""

        return cls(
            name=pick("name", "fullName", "full_name", "customerName"),
            email=pick("email", "customerEmail"),
            phone=pick("phone", "customerPhone"),
            source_language=pick("source_language", "sourceLanguage", "sourceLang"),
            target_language=pick("target_language", "targetLanguage", "targetLang"),
            intended_use=pick("intended_use", "intendedUse"),
            quote_id=pick("quote_id", "quoteId"),
            files=[StoredFile.from_dict(f) for f in data.get("files", []) if isinstance(f, dict)],
        )

    def freeze(self) -> "FrozenSubmission":
        """
        Create an immutable snapshot for the job thread.

        Returns:
            FrozenSubmission (files become a tuple)
        """
        return FrozenSubmission(
            quote_id=self.quote_id,
            name=self.name,
            email=self.email,
            phone=self.phone,
            source_language=self.source_language,
            target_language=self.target_language,
            intended_use=self.intended_use,
            files=tuple(StoredFile(**f.to_dict()) for f in self.files),
        )


@dataclass(frozen=True)
class FrozenSubmission:
    """
    Immutable snapshot of a quote request for the job thread.

    The job thread owns this exclusively; the request thread keeps working
    with its own QuoteRequest.
    """

    quote_id: str
    name: str
    email: str
    phone: str
    source_language: str
    target_language: str
    intended_use: str
    files: Tuple[StoredFile, ...] = ()

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def language_pair(self) -> str:
        return f"{self.source_language} -> {self.target_language}"
