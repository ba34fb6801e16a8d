from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Set

from nodalsim.errors import BorrowConflict, MissingEndpoint
from nodalsim.linalg.matrix import Matrix
from .element import GenericElement
from .node import GenericNode


@dataclass
class NodalGraph:
    """
    Arena holding the nodes and elements of a nodal network.

    Nodes and elements are addressed by their position in the arena. Each
    node keeps the indices of the elements registered at it, which is all the
    topology needed to compute its flux discrepancy (a row of the incidence
    matrix, stored sparsely).

    Attributes:
        nodes: Nodes in creation order.
        elements: Elements in creation order.
    """
    nodes: List[GenericNode] = field(default_factory=list)
    elements: List[GenericElement] = field(default_factory=list)
    _resolving: Set[int] = field(default_factory=set, init=False, repr=False, compare=False)

    def node(self, index: int) -> GenericNode:
        """
        Node at `index`.

        Raises:
            MissingEndpoint: If no node has this index.
        """
        if not 0 <= index < len(self.nodes):
            raise MissingEndpoint(f"Node {index} does not exist ({len(self.nodes)} nodes).")
        return self.nodes[index]

    def add_node(self, node: GenericNode) -> int:
        self.nodes.append(node)
        return len(self.nodes) - 1

    def add_element(self, element: GenericElement) -> int:
        """
        Register an already validated element and return its index.

        The element is recorded at every node of `element.kind.endpoints`, then
        given the chance to update the network (e.g. lock the node it drives).
        """
        index = len(self.elements)
        self.elements.append(element)
        for n in element.kind.endpoints(element):
            self.nodes[n].elements.append(index)
        element.kind.attach(element, self)
        return index

    def flux_discrepancy(self, index: int) -> Matrix:
        """Inflow minus outflow at node `index`, summed over its elements."""
        node = self.node(index)
        total = Matrix(node.components, 1)
        for e in node.elements:
            element = self.elements[e]
            total = total + element.kind.contribution(element, self, index)
        return total

    @contextmanager
    def resolving(self, index: int) -> Iterator[None]:
        """
        Mark node `index` while a drive element derives its flux from it.

        Raises:
            BorrowConflict: If the node is already being resolved, i.e. the
                drive elements form a loop.
        """
        if index in self._resolving:
            raise BorrowConflict(f"Node {index} is driven around a loop of potential-driving elements.")
        self._resolving.add(index)
        try:
            yield
        finally:
            self._resolving.discard(index)

    def driving_elements(self) -> Iterator[GenericElement]:
        return (e for e in self.elements if e.kind.drives_potential)

    def settle_driven_potentials(self) -> None:
        """
        Re-derive every driven node from its dominant node.

        Drive elements may be chained, so passes in element order repeat until
        nothing changes; each pass fixes at least one more link of any chain.
        """
        drivers = list(self.driving_elements())
        for _ in range(len(drivers)):
            changed = False
            for element in drivers:
                changed = element.kind.sync(element, self) or changed
            if not changed:
                break

    def snapshot(self) -> List[Matrix]:
        return [n.get_potential() for n in self.nodes]

    def restore(self, potentials: List[Matrix]) -> None:
        for node, value in zip(self.nodes, potentials):
            node.set_potential(value)
