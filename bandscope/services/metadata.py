"""
JSON codec for the metadata files kept next to every project and resource.

Records are dataclasses. Fields tagged with ``timestamp_field`` are stored as
ISO-8601 strings and decoded back to aware UTC datetimes. Decoding is lenient
about schema drift: unknown keys are ignored and absent optional fields take
their dataclass defaults, so files written by older versions keep loading.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import MISSING, field, fields, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

from bandscope.common.errors import Corrupt, IoFailure, NotFound


T = TypeVar("T")

TIMESTAMP_CODEC = "timestamp"

# Older writers emitted nanosecond fractions; datetime keeps microseconds.
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


def timestamp_field(**kwargs: Any) -> Any:
    return field(metadata={"codec": TIMESTAMP_CODEC}, **kwargs)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        text = _LONG_FRACTION.sub(r"\1", text, count=1)
        try:
            value = datetime.fromisoformat(text)
        except ValueError as exc:
            raise Corrupt(f"Invalid timestamp '{raw}'.") from exc
    else:
        raise Corrupt(f"Invalid timestamp {raw!r}.")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ----------------------------------------------------------------------
# Raw file access
# ----------------------------------------------------------------------

def _replace_atomically(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
    except OSError as exc:
        try:
            tmp_path.unlink()
        except OSError:
            pass
        raise IoFailure(f"Failed to write {path.name}: {exc}") from exc


def read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError as exc:
        raise NotFound(f"{path.name} not found.") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise Corrupt(f"Failed to parse {path}: {exc}") from exc
    except OSError as exc:
        raise IoFailure(f"Failed to read {path}: {exc}") from exc


def write_json(path: Path, payload: Any) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    _replace_atomically(path, text.encode("utf-8"))


def read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise NotFound(f"{path.name} not found.") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise IoFailure(f"Failed to read {path.name}: {exc}") from exc


def read_text_optional(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    return read_text(path)


def write_text(path: Path, content: str) -> None:
    _replace_atomically(path, content.encode("utf-8"))


# ----------------------------------------------------------------------
# Records
# ----------------------------------------------------------------------

def _has_default(f) -> bool:  # noqa: ANN001
    return f.default is not MISSING or f.default_factory is not MISSING


def encode_record(record: Any) -> Dict[str, Any]:
    if not is_dataclass(record):
        raise TypeError(f"Expected a dataclass record, got {type(record).__name__}.")
    payload: Dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if f.metadata.get("codec") == TIMESTAMP_CODEC and value is not None:
            value = format_timestamp(value)
        payload[f.name] = value
    return payload


def decode_record(cls: Type[T], payload: Any) -> T:
    if not isinstance(payload, dict):
        raise Corrupt(f"{cls.__name__} metadata must be a JSON object.")
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        value = payload.get(f.name)
        if value is None:
            if _has_default(f):
                continue
            raise Corrupt(f"{cls.__name__} metadata is missing '{f.name}'.")
        if f.metadata.get("codec") == TIMESTAMP_CODEC:
            value = parse_timestamp(value)
        elif f.type in ("str", "Optional[str]") and not isinstance(value, str):
            raise Corrupt(f"{cls.__name__}.{f.name} must be a string.")
        elif f.type == "bool" and not isinstance(value, bool):
            raise Corrupt(f"{cls.__name__}.{f.name} must be a boolean.")
        kwargs[f.name] = value
    return cls(**kwargs)


def load_record(cls: Type[T], path: Path) -> T:
    return decode_record(cls, read_json(path))


def save_record(record: Any, path: Path) -> None:
    write_json(path, encode_record(record))
