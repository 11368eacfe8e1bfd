import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml


VALID_MALFORMED_POLICIES = {"abort", "skip"}
VALID_THEMES = {"light", "dark"}


@dataclass(frozen=True)
class ReportConfig:
    output_root: Path
    export_prefix: str
    top_unknown_tokens: int
    failure_prompt_chars: int
    on_malformed: str
    log_level: str
    # Presentation context only; nothing in the scoring core reads it.
    theme: str


DEFAULT_CONFIG = {
    "output_root": "results/sql_validation",
    "export_prefix": "sql_validation",
    "top_unknown_tokens": 5,
    "failure_prompt_chars": 60,
    "on_malformed": "abort",
    "log_level": "INFO",
    "theme": "light",
}


def _load_dict_from_file(config_path: Path) -> dict[str, Any]:
    suffix = config_path.suffix.lower()
    raw_text = config_path.read_text(encoding="utf-8")

    if suffix in {".yaml", ".yml"}:
        loaded = yaml.safe_load(raw_text)
    elif suffix == ".json":
        loaded = json.loads(raw_text)
    else:
        raise ValueError(f"Unsupported config format: {config_path}")

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError("Config file must contain a JSON/YAML object.")
    return loaded


def _validate_positive_int(field_name: str, value: Any) -> int:
    try:
        int_value = int(value)
    except (TypeError, ValueError) as error:
        raise ValueError(f"{field_name} must be an integer, got: {value}") from error
    if int_value <= 0:
        raise ValueError(f"{field_name} must be > 0.")
    return int_value


def load_config(config_path: Optional[Path] = None) -> ReportConfig:
    user_config = _load_dict_from_file(config_path) if config_path is not None else {}
    unknown_fields = sorted(set(user_config).difference(DEFAULT_CONFIG))
    if unknown_fields:
        raise ValueError("Unknown config field(s): " + ", ".join(unknown_fields) + ".")

    merged = dict(DEFAULT_CONFIG)
    merged.update(user_config)

    export_prefix = str(merged["export_prefix"]).strip()
    if not export_prefix:
        raise ValueError("export_prefix must be non-empty.")

    on_malformed = str(merged["on_malformed"]).strip().lower()
    if on_malformed not in VALID_MALFORMED_POLICIES:
        raise ValueError(
            f"on_malformed must be one of {sorted(VALID_MALFORMED_POLICIES)}, got: {merged['on_malformed']}"
        )

    log_level = str(merged["log_level"]).strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"log_level must be a logging level name, got: {merged['log_level']}")

    theme = str(merged["theme"]).strip().lower()
    if theme not in VALID_THEMES:
        raise ValueError(f"theme must be one of {sorted(VALID_THEMES)}, got: {merged['theme']}")

    return ReportConfig(
        output_root=Path(merged["output_root"]),
        export_prefix=export_prefix,
        top_unknown_tokens=_validate_positive_int("top_unknown_tokens", merged["top_unknown_tokens"]),
        failure_prompt_chars=_validate_positive_int("failure_prompt_chars", merged["failure_prompt_chars"]),
        on_malformed=on_malformed,
        log_level=log_level,
        theme=theme,
    )
