"""
Textual action grammar shared by the planner output and the executor.

An action is ``<commandName> <arg> <arg> ...`` where an argument may be
wrapped in double quotes to admit spaces.
"""
import re
from typing import List, Tuple

_FENCE_OPEN_RE = re.compile(r"```[a-z]*\n")
_FENCE_RE = re.compile(r"```")
_NUMBERING_RE = re.compile(r"^\d+\.\s*")
_TOKEN_RE = re.compile(r'(?:[^\s"]+|"[^"]*")+')
_EDGE_QUOTE_RE = re.compile(r'^"|"$')


def strip_numbering(text: str) -> str:
    return _NUMBERING_RE.sub("", text.strip()).strip()


def clean_action(text: str) -> str:
    """Remove code fences and list numbering, then trim."""
    if not text:
        return ""
    cleaned = _FENCE_OPEN_RE.sub("", text)
    cleaned = _FENCE_RE.sub("", cleaned)
    return strip_numbering(cleaned)


def tokenize(text: str) -> List[str]:
    return [_EDGE_QUOTE_RE.sub("", token) for token in _TOKEN_RE.findall(text or "")]


def parse_action(text: str) -> Tuple[str, List[str]]:
    """Split a raw action string into its command name and arguments.

    Returns ``("", [])`` for text with no tokens.
    """
    tokens = tokenize(clean_action(text))
    if not tokens:
        return "", []
    return tokens[0], tokens[1:]


def format_action(name: str, *args) -> str:
    """Inverse of :func:`parse_action` for arguments without double quotes."""
    parts = [name]
    for arg in args:
        text = str(arg)
        parts.append(f'"{text}"' if any(ch.isspace() for ch in text) else text)
    return " ".join(parts)


def help_request(question: str) -> str:
    return f"askForHelp {question}"
