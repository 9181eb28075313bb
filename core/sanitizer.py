import re
from pathlib import Path
from typing import Any, Union
from core.exceptions import CraftMindError

class SecurityError(CraftMindError):
    """Raised when a security boundary is violated."""
    pass

# Regex for masking secrets (best-effort)
SECRET_PATTERNS = [
    re.compile(r"sk-[a-zA-Z0-9-]{32,}", re.IGNORECASE), # Generic OpenAI/OpenRouter style
    re.compile(r"Bearer\s+[a-zA-Z0-9._-]+", re.IGNORECASE),
    re.compile(r"api[-_]?key", re.IGNORECASE) # Catch key names in dicts
]

# Server commands start with this character; generated code must never send them.
COMMAND_PREFIX = "/"

def sanitize_path(file_path: Union[str, Path], root_dir: Union[str, Path]) -> Path:
    """
    Ensures a path stays inside ``root_dir``.
    Prevents path traversal when persisting generated code.
    """
    root = Path(root_dir).resolve()
    raw_target = Path(file_path)
    # Resolve relative paths against the declared jail root, not the process cwd.
    target = (root / raw_target).resolve() if not raw_target.is_absolute() else raw_target.resolve()

    try:
        target.relative_to(root)
    except ValueError as exc:
        raise SecurityError(f"Access denied: Path '{file_path}' escapes root '{root_dir}'.") from exc

    return target

def sanitize_chat_message(message: Any, max_length: int = 250) -> str:
    """
    Normalizes an outgoing chat message.

    Returns an empty string when the message must not be sent: empty text or
    text starting with the server command prefix. Overlong text is truncated.
    """
    if message is None:
        return ""
    text = str(message).strip()
    if not text or text.startswith(COMMAND_PREFIX):
        return ""
    if len(text) > max_length:
        text = text[:max_length]
    return text

def mask_secrets(data: Any) -> Any:
    """
    Recursively redacts sensitive info from data.
    """
    if isinstance(data, dict):
        new_dict = {}
        for k, v in data.items():
            if isinstance(k, str) and SECRET_PATTERNS[2].search(k):
                new_dict[k] = "[REDACTED]"
            else:
                new_dict[k] = mask_secrets(v)
        return new_dict
    elif isinstance(data, list):
        return [mask_secrets(i) for i in data]
    elif isinstance(data, str):
        masked = data
        for p in SECRET_PATTERNS[:2]:
            # Mask the actual secret value if found in string
            masked = p.sub("[REDACTED]", masked)
        return masked
    return data
