from __future__ import annotations

import json
from typing import Any


def quote_value(value: Any) -> str:
    """logfmt rendering: numbers bare, None as NA, everything else JSON-quoted."""
    if value is None:
        return "NA"
    # bool first: True is an int too
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(str(value), ensure_ascii=False)


def fmt(key: str, value: Any) -> str:
    return f"{key}={quote_value(value)}"


def fmt_all(**fields: Any) -> str:
    """Join several key=value pairs in call order."""
    return " ".join(fmt(k, v) for k, v in fields.items())
