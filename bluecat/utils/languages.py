import re
from typing import Tuple

# ===========================
# Language Patterns
# ===========================
LANGUAGE_PATTERNS = [
    ("MULTI", re.compile(r"multi", re.IGNORECASE), "🌍"),
    ("VOSTFR", re.compile(r"vostfr", re.IGNORECASE), "🇫🇷"),
    ("FRENCH", re.compile(r"french", re.IGNORECASE), "🇫🇷"),
    ("TRUEFRENCH", re.compile(r"truefrench", re.IGNORECASE), "🇫🇷"),
    ("VFF", re.compile(r"vff", re.IGNORECASE), "🇫🇷"),
    ("VF2", re.compile(r"vf2", re.IGNORECASE), "🇫🇷"),
    ("VFQ", re.compile(r"vfq", re.IGNORECASE), "🇫🇷"),
    ("VFI", re.compile(r"vfi", re.IGNORECASE), "🇫🇷"),
    ("VOF", re.compile(r"vof", re.IGNORECASE), "🇫🇷"),
    ("ENGLISH", re.compile(r"english", re.IGNORECASE), "🇺🇸"),
    ("SPANISH", re.compile(r"spanish", re.IGNORECASE), "🇪🇸"),
    ("GERMAN", re.compile(r"german", re.IGNORECASE), "🇩🇪"),
    ("ITALIAN", re.compile(r"italian", re.IGNORECASE), "🇮🇹"),
]

UNKNOWN_LANGUAGE = "?"
UNKNOWN_LANGUAGE_EMOJI = "🌐"


# ===========================
# Language Detection
# ===========================
def detect_language(text: str) -> Tuple[str, str]:
    if not text:
        return (UNKNOWN_LANGUAGE, UNKNOWN_LANGUAGE_EMOJI)

    for name, pattern, emoji in LANGUAGE_PATTERNS:
        if pattern.search(text):
            return (name, emoji)

    return (UNKNOWN_LANGUAGE, UNKNOWN_LANGUAGE_EMOJI)
