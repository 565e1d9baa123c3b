"""Client-side persistence for the cart identifier."""
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

logger = logging.getLogger(__name__)

CART_ID_KEY = "shopify_cart_id"


class CartIdStorage(Protocol):
    """Key-value storage holding only the cart id, never the cart contents."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryCartIdStorage:
    """Storage that lives as long as the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileCartIdStorage:
    """Storage backed by a small JSON file, surviving restarts."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable cart storage %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)
