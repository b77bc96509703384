# backend/ruralcare/services/kv_store.py

from copy import deepcopy
from typing import Any, Dict, List, Optional

# In-memory key-value table standing in for the hosted one
_store: Dict[str, Any] = {}


def get(key: str) -> Optional[Any]:
    value = _store.get(key)
    return deepcopy(value) if value is not None else None


def set(key: str, value: Any) -> None:
    _store[key] = deepcopy(value)


def delete(key: str) -> None:
    _store.pop(key, None)


def get_by_prefix(prefix: str) -> List[Any]:
    return [deepcopy(value) for key, value in sorted(_store.items()) if key.startswith(prefix)]


def clear() -> None:
    _store.clear()
