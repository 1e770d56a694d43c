import json
from pathlib import Path

from django.core.management.base import CommandError


def read_payload(path: str) -> dict:
    """Load a JSON request body from disk for the pricing commands."""
    file_path = Path(path)
    if not file_path.exists():
        raise CommandError(f"File not found: {file_path}")
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        raise CommandError(f"Invalid JSON in {file_path}: {e}") from e
    if not isinstance(payload, dict):
        raise CommandError(f"Expected a JSON object in {file_path}")
    return payload
