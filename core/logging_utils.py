import json
import datetime
import os
import sys

def log_json(level: str, event: str, goal: str = None, details: dict = None, stage: str = None):
    """
    Writes one JSON object per line describing an agent event.

    Entries go to stderr unless ``CRAFTMIND_LOG_STREAM=stdout``, so the
    interactive CLI output on stdout stays readable. Secrets in ``details``
    are masked before serialisation.

    Args:
        level (str): "INFO", "WARN" or "ERROR"; case-insensitive.
        event (str): snake_case event name, e.g. "act_executed".
        goal (str, optional): The goal the agent was pursuing.
        details (dict, optional): Event payload.
        stage (str, optional): Cycle stage that emitted the event
            ("observe", "think", "validate", "act", "resultAnalysis").
    """
    from core.sanitizer import mask_secrets

    entry = {
        "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "level": level.upper(),
        "event": event,
    }
    if stage:
        entry["stage"] = stage
    if goal:
        entry["goal"] = goal
    if details:
        entry["details"] = mask_secrets(details)

    target = os.getenv("CRAFTMIND_LOG_STREAM", "stderr").lower()
    stream = sys.stdout if target == "stdout" else sys.stderr
    stream.write(json.dumps(entry, default=str) + "\n")
    stream.flush()
