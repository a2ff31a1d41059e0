"""Configuration validator tool.

Validates config/onair.yaml and the environment to catch errors before an
event goes live.

Usage:
    python tools/validate_config.py
"""

import os
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

KNOWN_KEYS = {
    "store_backend",
    "sheet_proxy_url",
    "sheet_allowed_prefix",
    "sheet_timeout_seconds",
    "max_question_length",
    "max_poll_options",
    "reconcile_interval_seconds",
    "csv_cache_ttl_seconds",
    "csv_placeholder",
}
POSITIVE_NUMBERS = (
    "sheet_timeout_seconds",
    "max_question_length",
    "max_poll_options",
    "reconcile_interval_seconds",
)


def validate_onair(config_path: Path) -> list[str]:
    """Validate onair.yaml."""
    errors = []

    if not config_path.exists():
        return [f"File not found: {config_path}"]

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data:
        return ["Empty config file"]

    onair = data.get("onair")
    if not isinstance(onair, dict):
        return ["Missing 'onair' section"]

    for key in sorted(set(onair) - KNOWN_KEYS):
        errors.append(f"Unknown setting: {key}")

    if onair.get("store_backend", "memory") not in ("memory", "supabase"):
        errors.append(f"store_backend must be 'memory' or 'supabase', got {onair.get('store_backend')!r}")

    for key in POSITIVE_NUMBERS:
        value = onair.get(key)
        if value is not None and (not isinstance(value, (int, float)) or value <= 0):
            errors.append(f"{key} must be a positive number")

    ttl = onair.get("csv_cache_ttl_seconds")
    if ttl is not None and (not isinstance(ttl, (int, float)) or ttl < 0):
        errors.append("csv_cache_ttl_seconds must be zero or positive")

    if not str(onair.get("sheet_allowed_prefix", "https://")).startswith("https://"):
        errors.append("sheet_allowed_prefix must be an https:// URL prefix")

    if isinstance(onair.get("max_poll_options"), int) and onair["max_poll_options"] > 6:
        errors.append("max_poll_options cannot exceed 6")

    return errors


def validate_environment(config_path: Path) -> list[str]:
    """Check the environment matches the chosen store backend."""
    errors = []

    backend = os.getenv("ONAIR_STORE")
    if backend is None and config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            backend = ((yaml.safe_load(f) or {}).get("onair") or {}).get("store_backend")

    if backend == "supabase":
        if not (os.getenv("SUPABASE_URL") or os.getenv("SUPABASE_PROJECT_REF")):
            errors.append("Set SUPABASE_URL or SUPABASE_PROJECT_REF for the supabase store")
        if not os.getenv("SUPABASE_ANON_KEY"):
            errors.append("Set SUPABASE_ANON_KEY for the supabase store")

    return errors


def main():
    project_root = Path(__file__).parent.parent
    load_dotenv(project_root / ".env")
    config_path = project_root / "config" / "onair.yaml"

    all_errors = []

    print("Validating onair.yaml...")
    errors = validate_onair(config_path)
    all_errors.extend(errors)
    print(f"  {'PASS' if not errors else f'FAIL ({len(errors)} errors)'}")
    for e in errors:
        print(f"    - {e}")

    print("Validating environment...")
    errors = validate_environment(config_path)
    all_errors.extend(errors)
    print(f"  {'PASS' if not errors else f'FAIL ({len(errors)} errors)'}")
    for e in errors:
        print(f"    - {e}")

    print()
    if all_errors:
        print(f"VALIDATION FAILED: {len(all_errors)} error(s) found.")
        sys.exit(1)
    else:
        print("ALL CONFIGS VALID.")


if __name__ == "__main__":
    main()
