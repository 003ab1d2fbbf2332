"""
======================================================================
 Presence Runtime — Version v1.0.0 (Build 2026.10)
 Licensed under the MIT License
======================================================================
"""

"""
Configuration validation script.

This script validates the presence runtime environment (process env plus
an optional .env file) without starting the bot.

Design rules:
- No side effects on import
- No runtime startup, no network I/O
- Validation only (no mutation)
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv
from jsonschema import Draft7Validator

from shared.config.presence import ConfigError, load_presence_config, validate_presence_env


# ------------------------------------------------------------
# Paths
# ------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
SCHEMA_PATH = ROOT / "schemas" / "presence.schema.json"


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _load_schema(path: Path = SCHEMA_PATH) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Validators
# ------------------------------------------------------------

def schema_errors(snapshot: Dict[str, Any], schema: Dict[str, Any]) -> List[str]:
    """
    Validate a redacted config snapshot against the JSON schema.
    """
    validator = Draft7Validator(schema)
    errors = []
    for error in sorted(validator.iter_errors(snapshot), key=lambda e: list(e.path)):
        location = ".".join(str(p) for p in error.path) or "<root>"
        errors.append(f"{location}: {error.message}")
    return errors


def validate_environment(env=None) -> bool:
    ok = True

    for problem in validate_presence_env(env):
        _error(problem)
        ok = False

    try:
        config = load_presence_config(env)
    except ConfigError:
        return False

    for problem in schema_errors(config.snapshot(), _load_schema()):
        _error(problem)
        ok = False

    return ok


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main() -> int:
    load_dotenv()

    if not validate_environment():
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
