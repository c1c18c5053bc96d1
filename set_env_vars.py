"""Simple .env loader.

Usage:
  - Import and call `load()` from Python: `from set_env_vars import load; load()`
  - Check which settings are present:
      python set_env_vars.py --env-file .env

Values are never printed, only whether each known key is set.
"""
from __future__ import annotations

import os
from typing import Dict

KNOWN_KEYS = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "API_KEY",
    "GEMINI_MODEL",
    "GEMINI_TIMEOUT_S",
    "MONGO_URI",
    "MONGO_DB",
    "MONGO_TLS",
    "W1H_STORAGE_PATH",
    "W1H_STORAGE_KEY",
    "W1H_LOG_LEVEL",
    "PORT",
)


def _parse_dotenv(path: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for raw in fh:
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export "):].lstrip()
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip()
                if not key:
                    continue
                if len(val) >= 2 and val[0] == val[-1] and val[0] in ("\"", "'"):
                    val = val[1:-1]
                pairs[key] = val
    except FileNotFoundError:
        return {}
    return pairs


def load(path: str = ".env", override: bool = False) -> list[str]:
    """Load key=value pairs from `path` into os.environ.

    Args:
        path: path to .env file (default: .env)
        override: if True, overwrite existing environment variables

    Returns:
        The keys that were set.
    """
    loaded: list[str] = []
    for k, v in _parse_dotenv(path).items():
        if override or k not in os.environ:
            os.environ[k] = v
            loaded.append(k)
    return loaded


def env_status() -> Dict[str, bool]:
    return {k: bool(os.environ.get(k)) for k in KNOWN_KEYS}


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Load .env and report which settings are present.")
    parser.add_argument("--env-file", "-e", default=".env", help="Path to .env file")
    parser.add_argument("--override", action="store_true", help="Override existing env vars")
    args = parser.parse_args()

    loaded = load(args.env_file, override=args.override)
    print(f"Loaded {len(loaded)} variable(s) from {args.env_file}")
    for key, present in env_status().items():
        print(f"  {key}: {'set' if present else 'missing'}")
