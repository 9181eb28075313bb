import os
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from core.logging_utils import log_json
from core.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Value validators: each returns (is_valid: bool, coerced_value, reason: str)
# ---------------------------------------------------------------------------

def _validate_positive_int(key: str, val: Any) -> Tuple[bool, Any, str]:
    try:
        if isinstance(val, bool):
            raise TypeError(val)
        v = int(val)
        if v > 0:
            return True, v, ""
        return False, None, f"{key} must be a positive integer, got {val!r}"
    except (ValueError, TypeError):
        return False, None, f"{key} must be an integer, got {val!r}"


def _validate_non_negative_float(key: str, val: Any) -> Tuple[bool, Any, str]:
    try:
        v = float(val)
        if v >= 0:
            return True, v, ""
        return False, None, f"{key} must be >= 0, got {val!r}"
    except (ValueError, TypeError):
        return False, None, f"{key} must be a number, got {val!r}"


def _validate_bool(key: str, val: Any) -> Tuple[bool, Any, str]:
    if isinstance(val, bool):
        return True, val, ""
    if isinstance(val, str) and val.lower() in ("true", "false", "1", "0", "yes", "no"):
        return True, val.lower() in ("true", "1", "yes"), ""
    return False, None, f"{key} must be a boolean, got {val!r}"


def _validate_string(key: str, val: Any) -> Tuple[bool, Any, str]:
    if val is None or isinstance(val, str):
        return True, val, ""
    return False, None, f"{key} must be a string, got {val!r}"


def _validate_float_range(key: str, val: Any, lo: float, hi: float) -> Tuple[bool, Any, str]:
    try:
        v = float(val)
        if lo <= v <= hi:
            return True, v, ""
        return False, None, f"{key} must be in [{lo}, {hi}], got {val!r}"
    except (ValueError, TypeError):
        return False, None, f"{key} must be a number, got {val!r}"


_POSITIVE_INT_KEYS = (
    "llm_timeout", "llm_max_retries", "minecraft_port", "max_recent_actions",
    "max_spatial_entries", "observe_radius", "spatial_radius", "entity_radius",
    "max_consecutive_failures", "max_failure_count", "max_idle_help_requests",
    "explore_radius", "explore_goal_action_count", "coder_max_retries",
    "coder_max_statements", "chat_max_length", "recursion_limit",
)
_STRING_KEYS = (
    "model_name", "api_key", "llm_base_url", "minecraft_host", "minecraft_username",
    "minecraft_version", "world_backend", "memory_path", "action_log_path",
    "skills_path", "generated_code_dir",
)

# Key → validator function (None = no validation, just pass through)
_KEY_VALIDATORS = {
    "planner_temperature": lambda k, v: _validate_float_range(k, v, 0.0, 2.0),
    "coder_temperature":   lambda k, v: _validate_float_range(k, v, 0.0, 2.0),
    "idle_poll_seconds":   lambda k, v: _validate_non_negative_float(k, v),
    "error_backoff_seconds": lambda k, v: _validate_non_negative_float(k, v),
    "auto_sleep":          lambda k, v: _validate_bool(k, v),
    "llm_next_action":     lambda k, v: _validate_bool(k, v),
}
_KEY_VALIDATORS.update({key: _validate_positive_int for key in _POSITIVE_INT_KEYS})
_KEY_VALIDATORS.update({key: _validate_string for key in _STRING_KEYS})

DEFAULT_CONFIG = {
    # Language model
    "model_name": "google/gemini-2.0-flash-exp:free",
    "api_key": None,
    "llm_base_url": "https://openrouter.ai/api/v1",
    "llm_timeout": 60,
    "llm_max_retries": 3,
    "planner_temperature": 0.1,
    "coder_temperature": 0.1,
    # World connection
    "minecraft_host": "localhost",
    "minecraft_port": 25565,
    "minecraft_username": "CraftMind",
    "minecraft_version": None,
    "world_backend": "simulation",
    # Storage
    "memory_path": "agent_memory.json",
    "action_log_path": "memory/action_log.jsonl",
    "skills_path": "skills_library.json",
    "generated_code_dir": "generated_code",
    # Memory bounds
    "max_recent_actions": 10,
    "max_spatial_entries": 4096,
    # Perception radii (blocks)
    "observe_radius": 5,
    "spatial_radius": 5,
    "entity_radius": 10,
    # Decision thresholds
    "max_consecutive_failures": 2,
    "max_failure_count": 3,
    "max_idle_help_requests": 2,
    "explore_radius": 16,
    "explore_goal_action_count": 10,
    "auto_sleep": True,
    "llm_next_action": False,
    # Generated code
    "coder_max_retries": 3,
    "coder_max_statements": 100000,
    "chat_max_length": 250,
    # Agent loop
    "recursion_limit": 300,
    "idle_poll_seconds": 1.0,
    "error_backoff_seconds": 5.0,
}

class ConfigManager:
    """
    Centralized configuration manager for CraftMind.
    Enforces a tiered strategy: (Overrides > ENV > JSON > Defaults).
    """
    def __init__(self, config_file="craftmind.config.json", overrides: Optional[Dict[str, Any]] = None):
        self.config_file = Path(config_file)
        self.runtime_overrides = overrides or {}
        self.file_config = {}
        self.effective_config = {}

        self.refresh()

    def _load_from_file(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            return {}
        try:
            with open(self.config_file, 'r') as f:
                data = json.load(f)
                log_json("INFO", "config_loaded_from_file", details={"path": str(self.config_file)})
        except json.JSONDecodeError as e:
            log_json("ERROR", "config_parse_failed", details={"error": str(e)})
            raise ConfigurationError(f"Failed to parse config file: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {self.config_file} must contain a JSON object")
        return data

    def _load_from_env(self) -> Dict[str, Any]:
        env_config = {}

        # Provider key conventions
        env_mappings = {
            "OPENROUTER_API_KEY": "api_key",
            "OPENAI_API_KEY": "api_key",
        }

        for env_key, config_key in env_mappings.items():
            if env_key in os.environ:
                env_config[config_key] = os.environ[env_key]

        # Standard CRAFTMIND_* overrides for all keys in DEFAULT_CONFIG
        for key in DEFAULT_CONFIG:
            env_key = f"CRAFTMIND_{key.upper()}"
            if env_key in os.environ:
                val = os.environ[env_key]
                # Type coercion with error handling
                try:
                    if isinstance(DEFAULT_CONFIG[key], bool):
                        env_config[key] = val.lower() in ("true", "1", "yes")
                    elif isinstance(DEFAULT_CONFIG[key], int):
                        env_config[key] = int(val)
                    elif isinstance(DEFAULT_CONFIG[key], float):
                        env_config[key] = float(val)
                    else:
                        env_config[key] = val
                except (ValueError, TypeError):
                    log_json("WARN", "config_env_coercion_failed", details={"key": key, "val": val})
                    # Skip this key, let it fall back to JSON/Default
                    continue

        return env_config

    def refresh(self):
        """Re-evaluates the effective configuration based on the tier hierarchy."""
        self.file_config = self._load_from_file()
        env_config = self._load_from_env()

        # Merge hierarchy: Defaults < JSON < ENV < Overrides
        merged = DEFAULT_CONFIG.copy()
        merged.update(self.file_config)
        merged.update(env_config)
        merged.update(self.runtime_overrides)

        self.effective_config = merged

    def _validate_value(self, key: str, value: Any) -> Any:
        """Validate *value* for *key*; return coerced value or DEFAULT_CONFIG fallback on error."""
        validator = _KEY_VALIDATORS.get(key)
        if validator is None:
            return value
        ok, coerced, reason = validator(key, value)
        if ok:
            return coerced
        default = DEFAULT_CONFIG.get(key)
        log_json("ERROR", "config_value_invalid",
                 details={"key": key, "value": value, "reason": reason,
                           "fallback": default})
        return default

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieves a configuration value from the effective config."""
        val = self.effective_config.get(key, default)
        return self._validate_value(key, val) if key in _KEY_VALIDATORS else val

    def show_config(self) -> Dict[str, Any]:
        """Return the effective config dict (for show-config / diagnostics)."""
        return dict(self.effective_config)

    def set_runtime_override(self, key: str, value: Any):
        """Sets a temporary runtime override."""
        self.runtime_overrides[key] = value
        self.refresh()

    def persist_to_file(self, key: str, value: Any):
        """Sets a configuration value and persists it to the config file."""
        self.file_config[key] = value
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.file_config, f, indent=4)
            log_json("INFO", "config_persisted", details={"key": key})
            self.refresh()
        except OSError as e:
            log_json("ERROR", "config_save_failed", details={"error": str(e)})
            raise ConfigurationError(f"Failed to save config: {e}")

    def bootstrap(self):
        """Generates a default config file if it doesn't exist."""
        if self.config_file.exists():
            log_json("INFO", "config_bootstrap_skipped_exists")
            return

        # Create minimal valid config
        bootstrap_data = {
            "model_name": DEFAULT_CONFIG["model_name"],
            "api_key": "YOUR_OPENROUTER_API_KEY_HERE",
            "world_backend": DEFAULT_CONFIG["world_backend"],
        }

        with open(self.config_file, 'w') as f:
            json.dump(bootstrap_data, f, indent=4)
        log_json("INFO", "config_bootstrapped", details={"path": str(self.config_file)})

# Global instance initialized with defaults
config = ConfigManager()
