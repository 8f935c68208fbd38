from __future__ import annotations

from typing import Iterable, Iterator, List, Mapping, Optional, Tuple


class HeaderBag:
    """
    Case-insensitive, multi-valued header collection for one side of a cycle.

    Entries are kept as ordered ``(name, value)`` pairs so repeated names
    survive a round-trip to the wire. Lookups ignore the stored casing.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Iterable[Tuple[str, str]]] = None) -> None:
        self._items: List[Tuple[str, str]] = [(str(k), str(v)) for k, v in (items or ())]

    @classmethod
    def from_mapping(cls, headers: Mapping[str, str]) -> "HeaderBag":
        return cls(headers.items())

    @classmethod
    def from_raw(cls, raw: Iterable[Tuple[bytes, bytes]]) -> "HeaderBag":
        return cls(
            (k.decode("latin-1"), v.decode("latin-1")) for k, v in raw
        )

    def raw(self) -> List[Tuple[bytes, bytes]]:
        """ASGI form: lower-cased latin-1 names, latin-1 values. Non-latin-1 text raises."""
        return [
            (k.lower().encode("latin-1"), v.encode("latin-1"))
            for k, v in self._items
        ]

    # -------------------------------------------------------------- queries

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        low = name.lower()
        return any(k.lower() == low for k, _ in self._items)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderBag):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return f"HeaderBag({self._items!r})"

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        low = name.lower()
        for k, v in self._items:
            if k.lower() == low:
                return v
        return default

    def get_all(self, name: str) -> List[str]:
        low = name.lower()
        return [v for k, v in self._items if k.lower() == low]

    def joined(self, name: str) -> str:
        """All occurrences joined with ``", "``; empty string when absent."""
        return ", ".join(self.get_all(name))

    def as_dict(self) -> dict[str, List[str]]:
        out: dict[str, List[str]] = {}
        for k, v in self._items:
            out.setdefault(k.lower(), []).append(v)
        return out

    # ------------------------------------------------------------ mutations

    def set(self, name: str, value: str) -> None:
        """Replace every occurrence with a single one, kept at the first position."""
        low = name.lower()
        out: List[Tuple[str, str]] = []
        placed = False
        for k, v in self._items:
            if k.lower() != low:
                out.append((k, v))
            elif not placed:
                out.append((name, value))
                placed = True
        if not placed:
            out.append((name, value))
        self._items = out

    def add(self, name: str, value: str) -> None:
        self._items.append((name, value))

    def delete(self, name: str) -> None:
        low = name.lower()
        self._items = [(k, v) for k, v in self._items if k.lower() != low]

    def extend_last(self, name: str, suffix: str) -> None:
        """Concatenate ``suffix`` onto the last occurrence of ``name``."""
        low = name.lower()
        for i in range(len(self._items) - 1, -1, -1):
            k, v = self._items[i]
            if k.lower() == low:
                self._items[i] = (k, v + suffix)
                return
        raise KeyError(name)
