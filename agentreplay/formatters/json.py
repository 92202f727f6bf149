"""JSON formatter: structured output to stdout."""
from __future__ import annotations

import json
import sys
from enum import Enum


def _default_serializer(obj):
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return str(obj)


def format_json(data) -> None:
    """Write canonical data as JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=_default_serializer)
    sys.stdout.write("\n")
