"""Substring rules that turn free-text action results into control signals."""

# Markers Think and Act use to decide whether an action failed.
FAILURE_MARKERS = (
    "fail",
    "error",
    "not enough",
    "not found in inventory",
    "cannot place",
    "no recipe",
    "need a crafting table",
    "unknown action",
)

# Broader set used when classifying failures for plan adaptation.
ANALYSIS_FAILURE_INDICATORS = (
    "fail",
    "error",
    "cannot",
    "unable",
    "not found",
    "no recipe",
    "unknown action",
    "not enough",
)

# Checked in order; the first match names the reason.
_REASON_RULES = (
    ("not found", "not_found"),
    ("not enough", "insufficient_resources"),
    ("no recipe", "no_recipe"),
    ("unknown action", "unknown_action"),
    ("too far", "too_far"),
    ("```", "markdown_error"),
)


def is_failure(result) -> bool:
    if not result:
        return False
    lowered = str(result).lower()
    return any(marker in lowered for marker in FAILURE_MARKERS)


def indicates_failure(result) -> bool:
    if not result:
        return False
    lowered = str(result).lower()
    return any(marker in lowered for marker in ANALYSIS_FAILURE_INDICATORS)


def classify_failure_reason(result) -> str:
    lowered = str(result or "").lower()
    for needle, reason in _REASON_RULES:
        if needle in lowered:
            return reason
    return "unknown"
