"""Strict decoding of JSON frames and response bodies."""

from __future__ import annotations
import json
from typing import Any, Union


def decode_json(raw: Union[str, bytes, bytearray]) -> Any:
    """Parse a JSON document; raises ValueError on anything undecodable."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValueError(f"frame is not UTF-8: {e}") from e
    if not raw or not raw.strip():
        raise ValueError("empty frame")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e.msg}") from e


def require_object(raw: Union[str, bytes, bytearray], err: str = "Expected a JSON object.") -> dict:
    """Strict: must decode to an object, else raise."""
    data = decode_json(raw)
    if not isinstance(data, dict):
        raise ValueError(err)
    return data


def encode_frame(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False)
