"""Module ownership of schema nodes and detection of the common set.

Ownership is seeded from the schemas each operation touches and then
propagated to everything those schemas reference, through any depth of
nesting and around cycles, until no owner set changes. A schema owned by
more than one module is common.
"""

import logging
from collections import deque
from collections.abc import Iterable, Mapping

from vikagen.codegen.model import SchemaArena

logger = logging.getLogger(__name__)

__all__ = ['ModulePartitioner', 'SchemaOwnership', 'UNUSED_OWNER']

# Pseudo-owner of schemas that no operation reaches. It counts as an owner,
# so anything an unused schema shares with a real module is common.
UNUSED_OWNER = ''


class SchemaOwnership:
    """Read-only map from schema node id to the modules owning it."""

    def __init__(self, owners: Mapping[str, Iterable[str]]):
        self._owners = {
            node_id: frozenset(modules)
            for node_id, modules in sorted(owners.items())
            if modules
        }

    def owners(self, node_id: str) -> frozenset[str]:
        return self._owners.get(node_id, frozenset())

    def is_common(self, node_id: str) -> bool:
        return len(self.owners(node_id)) > 1

    def is_owned(self, node_id: str) -> bool:
        return node_id in self._owners

    def common(self) -> list[str]:
        """Return the ids of every common node, sorted."""
        return [node_id for node_id, owners in self._owners.items() if len(owners) > 1]

    def owned_by(self, module: str) -> list[str]:
        """Return the ids of the nodes owned by ``module`` alone, sorted."""
        return [
            node_id
            for node_id, owners in self._owners.items()
            if owners == frozenset([module])
        ]

    def __len__(self) -> int:
        return len(self._owners)


class ModulePartitioner:
    """Computes :class:`SchemaOwnership` over a schema arena.

    Example:
        >>> partitioner = ModulePartitioner(arena)
        >>> partitioner.seed('users', ['User'])
        >>> partitioner.seed('orders', ['Order'])
        >>> ownership = partitioner.partition()
        >>> ownership.common()
        ['Address']
    """

    def __init__(self, arena: SchemaArena):
        self.arena = arena
        self._seeds: dict[str, set[str]] = {}

    def seed(self, module: str, node_ids: Iterable[str]) -> None:
        """Record that ``module`` uses the given nodes directly."""
        self._seeds.setdefault(module, set()).update(node_ids)

    def partition(self, include_unused: bool = False) -> SchemaOwnership:
        """Run the fixed-point propagation.

        Args:
            include_unused: Also give an owner to component schemas no
                operation reaches, so they can be emitted.

        Returns:
            The ownership of every reached node.
        """
        owners: dict[str, set[str]] = {}
        for module in sorted(self._seeds):
            for node_id in sorted(self._seeds[module]):
                owners.setdefault(node_id, set()).add(module)
        self._propagate(owners, sorted(owners))

        if include_unused:
            unused = [
                node_id for node_id in self.arena.roots()
                if node_id not in owners and not self.arena.get(node_id).anonymous
            ]
            for node_id in unused:
                owners[node_id] = {UNUSED_OWNER}
            self._propagate(owners, unused)
        elif logger.isEnabledFor(logging.DEBUG):
            for node_id in self.arena.roots():
                if node_id not in owners and not self.arena.get(node_id).anonymous:
                    logger.debug(f"Schema '{node_id}' is not used by any operation")

        return SchemaOwnership(owners)

    def _propagate(self, owners: dict[str, set[str]], start: list[str]) -> None:
        worklist = deque(start)
        while worklist:
            node_id = worklist.popleft()
            current = owners[node_id]
            for child in self.arena.children_of(node_id):
                child_owners = owners.setdefault(child.id, set())
                if not current <= child_owners:
                    child_owners |= current
                    worklist.append(child.id)
