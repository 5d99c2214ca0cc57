"""Configuration loader for helmactions."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from helmactions.errors import ActionError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults.

    Keys left empty in the file are treated as unset.
    """

    KEY_TYPES = {
        "server_url": str,
        "token": str,
        "project": str,
        "verify_ssl": bool,
        "helm_bin": str,
        "tiller_bin": str,
        "tiller_history_max": int,
        "readiness_retries": int,
        "readiness_interval": float,
        "request_timeout": float,
        "verbose": bool,
        "log_file": str,
    }
    SUPPORTED_KEYS = set(KEY_TYPES)

    TYPE_LABELS = {str: "a string", bool: "true or false", int: "an integer", float: "a number"}

    @staticmethod
    def _accepted_types(expected: type) -> Tuple[type, ...]:
        if expected is float:
            return (int, float)
        return (expected,)

    def validate_value(self, key: str, value: Any) -> Any:
        expected = self.KEY_TYPES[key]
        # bool is a subclass of int, so only bool keys may hold one.
        valid = isinstance(value, self._accepted_types(expected))
        if isinstance(value, bool) and expected is not bool:
            valid = False
        if not valid:
            raise ActionError(
                f"Configuration key '{key}' must be {self.TYPE_LABELS[expected]}, got {value!r}."
            )
        if expected is float:
            return float(value)
        return value

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ActionError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ActionError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ActionError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ActionError(f"Unknown configuration keys: {unknown_list}")

        return {
            key: self.validate_value(key, value)
            for key, value in parsed.items()
            if value is not None
        }
