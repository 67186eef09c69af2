from .json import json_dumps, json_loads, to_jsonable

__all__ = ["json_dumps", "json_loads", "to_jsonable"]
