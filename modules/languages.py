"""Supported translation languages, their pricing tiers, and ISO code lookup."""

from __future__ import annotations

from typing import Dict, List

# Pricing tier per supported language (A cheapest, C most expensive)
LANGUAGE_TIERS: Dict[str, str] = {
    "English": "A",
    "Spanish": "A",
    "French": "B",
    "German": "B",
    "Japanese": "C",
}

DEFAULT_TIER = "A"

# ISO-639-1 codes OCR/LLM vendors report -> display name
ISO_LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English", "es": "Spanish", "fr": "French", "de": "German",
    "it": "Italian", "pt": "Portuguese", "ru": "Russian", "zh": "Chinese",
    "ja": "Japanese", "ko": "Korean", "ar": "Arabic", "hi": "Hindi",
    "tr": "Turkish", "pl": "Polish", "nl": "Dutch", "sv": "Swedish",
    "da": "Danish", "no": "Norwegian", "fi": "Finnish", "hr": "Croatian",
    "sr": "Serbian", "bg": "Bulgarian", "ro": "Romanian", "hu": "Hungarian",
    "cs": "Czech", "sk": "Slovak", "sl": "Slovenian", "et": "Estonian",
    "lv": "Latvian", "lt": "Lithuanian", "uk": "Ukrainian", "be": "Belarusian",
    "mk": "Macedonian", "sq": "Albanian", "mt": "Maltese", "ga": "Irish",
    "cy": "Welsh", "is": "Icelandic", "fo": "Faroese", "eu": "Basque",
    "ca": "Catalan", "gl": "Galician", "pa": "Punjabi", "ur": "Urdu",
    "fa": "Persian", "he": "Hebrew", "th": "Thai", "vi": "Vietnamese",
    "id": "Indonesian", "ms": "Malay", "tl": "Filipino", "sw": "Swahili",
    "am": "Amharic", "yo": "Yoruba", "ig": "Igbo", "ha": "Hausa",
    "zu": "Zulu", "xh": "Xhosa", "af": "Afrikaans",
}


def supported_languages() -> List[str]:
    """Languages offered in the quote form, in display order."""
    return list(LANGUAGE_TIERS)


def is_supported(language: str) -> bool:
    return language in LANGUAGE_TIERS


def to_language_name(code_or_name: str) -> str:
    """
    Turn a vendor language code into a display name.

    Known ISO codes map to their English name ("ja" -> "Japanese");
    anything else is capitalized ("unknown" -> "Unknown").
    """
    if not code_or_name:
        return ""
    # Vision sometimes reports regional tags such as "pt-BR"
    base = code_or_name.split("-")[0].lower()
    if base in ISO_LANGUAGE_NAMES:
        return ISO_LANGUAGE_NAMES[base]
    return code_or_name[:1].upper() + code_or_name[1:].lower()
