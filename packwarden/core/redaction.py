# packwarden/core/redaction.py
from __future__ import annotations

import re

__all__ = ["redactText"]

# Catalog tokens travel in the Authorization header; some mirrors also accept them in the query
_HEADER_KEYS = ("Authorization", "X-Api-Key")
_JSON_KEYS = ("token", "apiKey", "api_key")
_QUERY_KEYS = ("token", "access_token")

_SECRET = r"[\w.~+/\-]+=*"



def _compileRules() -> list[tuple[re.Pattern[str], str]]:
    rules = [(re.compile(rf"(?i)\b(Bearer\s+){_SECRET}"), r"\1***")]
    for key in _HEADER_KEYS:
        rules.append((re.compile(rf"(?i)({re.escape(key)}['\"]?\s*[:=]\s*['\"]?)(?!Bearer\b){_SECRET}"), r"\1***"))
    for key in _JSON_KEYS:
        rules.append((re.compile(rf'(?i)("{re.escape(key)}"\s*:\s*")[^"]*(")'), r"\1***\2"))
    for key in _QUERY_KEYS:
        rules.append((re.compile(rf"(?i)([?&]{re.escape(key)}=)[^&\s#]+"), r"\1***"))
    return rules


_RULES = _compileRules()



def redactText(text: str) -> str:
    """Replaces credentials in `text` with ***."""
    for pattern, replacement in _RULES:
        text = pattern.sub(replacement, text)
    return text
