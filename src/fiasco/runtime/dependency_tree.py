"""Builder dependency graph: cycle detection and dependency-first ordering."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List

from fiasco.exceptions import BuildGraphError

if TYPE_CHECKING:
    from fiasco.build.builder import Builder


class DependencyTree:
    """Graph of builders reachable from a root builder.

    Builders are identified by name. The graph is validated on construction:
    a cycle raises :class:`BuildGraphError` naming the builders on it.
    """

    def __init__(self, root: Builder):
        self.root = root
        self._order: List[Builder] = []
        self._builders: Dict[str, Builder] = {}
        self._visit(root, [])

    def _visit(self, builder: Builder, path: List[str]) -> None:
        name = builder.name
        if name in path:
            cycle = path[path.index(name):] + [name]
            raise BuildGraphError(f"dependency cycle: {' -> '.join(cycle)}", builder=name)
        if name in self._builders:
            return
        for child in builder.builder_dependencies():
            self._visit(child, path + [name])
        self._builders[name] = builder
        self._order.append(builder)

    def depth_first(self) -> List[Builder]:
        """Every builder, dependencies before dependents; the root is last."""
        return list(self._order)

    def dependencies_of(self, builder: Builder) -> List[Builder]:
        return [self._builders[child.name] for child in builder.builder_dependencies()]

    def dependents_of(self, builder: Builder) -> List[Builder]:
        return [b for b in self._order if any(c.name == builder.name for c in b.builder_dependencies())]

    def builder(self, name: str) -> Builder:
        try:
            return self._builders[name]
        except KeyError:
            raise KeyError(f"Builder {name} not found in dependency tree") from None

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self):
        return iter(self._order)
