"""
Decoded values and the per-session result set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List


@dataclass(frozen=True)
class DecodedValue:
    """A decoded barcode payload and its symbology (e.g. "EAN13")."""

    text: str
    format: str


class ResultSet:
    """
    Ordered, text-deduplicated collection of decoded values.

    Example:
        >>> results = ResultSet()
        >>> results.add(DecodedValue("123", "EAN13"))
        True
        >>> results.add(DecodedValue("123", "EAN13"))
        False
        >>> results.texts()
        ['123']
    """

    def __init__(self) -> None:
        self._values: Dict[str, DecodedValue] = {}

    def add(self, value: DecodedValue) -> bool:
        """Append the value unless its text is already present."""
        if value.text in self._values:
            return False
        self._values[value.text] = value
        return True

    def remove(self, index: int) -> DecodedValue:
        """
        Remove the value at a display index.

        Raises:
            IndexError: If index is out of range
        """
        if index < 0 or index >= len(self._values):
            raise IndexError(index)
        text = list(self._values)[index]
        return self._values.pop(text)

    def texts(self) -> List[str]:
        return list(self._values)

    def values(self) -> List[DecodedValue]:
        return list(self._values.values())

    def __contains__(self, text: object) -> bool:
        return text in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[DecodedValue]:
        return iter(list(self._values.values()))

    def __repr__(self) -> str:
        return f"ResultSet({self.texts()!r})"
