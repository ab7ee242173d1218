"""Deduplication of enum definitions.

Two enums with the same literal values in the same order are one enum: the
first one registered becomes canonical and every other one is an alias that
is emitted as a reference to the canonical definition.

The registry is filled while the IR is built and frozen before emission
starts. Registering into a frozen registry is a programming error.
"""

import dataclasses
import json
from typing import Any

__all__ = ['EnumEntry', 'EnumRegistry', 'enum_key']

EnumKey = tuple[tuple[str, str], ...]


def enum_key(values: list[Any]) -> EnumKey:
    """Return the identity of a literal list.

    Values are paired with their type name so that ``1``, ``1.0``, ``True``
    and ``'1'`` are all distinct. Object and array members are compared by
    their JSON encoding with sorted keys.
    """
    return tuple(
        (type(value).__name__, json.dumps(value, sort_keys=True)) for value in values
    )


@dataclasses.dataclass
class EnumEntry:
    key: EnumKey
    canonical: str
    values: list[Any]
    aliases: list[str] = dataclasses.field(default_factory=list)


class EnumRegistry:
    def __init__(self):
        self._entries: dict[EnumKey, EnumEntry] = {}
        self._by_node: dict[str, EnumKey] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register(self, node_id: str, values: list[Any]) -> EnumEntry:
        """Register the enum of ``node_id`` and return its entry.

        Raises:
            RuntimeError: If the registry is frozen.
        """
        if self._frozen:
            raise RuntimeError(
                f"Cannot register enum '{node_id}': the enum registry is frozen"
            )
        if node_id in self._by_node:
            return self._entries[self._by_node[node_id]]

        key = enum_key(values)
        entry = self._entries.get(key)
        if entry is None:
            entry = EnumEntry(key=key, canonical=node_id, values=list(values))
            self._entries[key] = entry
        entry.aliases.append(node_id)
        self._by_node[node_id] = key
        return entry

    def entry_for(self, node_id: str) -> EnumEntry:
        return self._entries[self._by_node[node_id]]

    def canonical_of(self, node_id: str) -> str:
        return self.entry_for(node_id).canonical

    def is_canonical(self, node_id: str) -> bool:
        return self.canonical_of(node_id) == node_id

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._by_node

    def __len__(self) -> int:
        return len(self._entries)
