import json
from typing import Any


def to_jsonable(obj: Any) -> Any:
    """Convert dataclass records, errors and containers to plain JSON values."""
    if hasattr(obj, "to_dict"):
        return to_jsonable(obj.to_dict())
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, bytes):
        return "0x" + obj.hex()
    return obj


def json_dumps(obj: Any) -> str:
    return json.dumps(to_jsonable(obj), separators=(",", ":"), ensure_ascii=False)


def json_loads(s: str) -> Any:
    return json.loads(s)
