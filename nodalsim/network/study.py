"""
Nodal analysis studies.

A study goes through two states. `NodalAnalysisStudy` collects nodes and
their boundary conditions; `configure()` hands its node storage over to a
`BuiltStudy`, where the topology is completed with elements and the network
is solved. Each state only exposes the operations that make sense in it, and
a configuring study that has been configured can no longer be used.

Solving assembles one residual per potential component of every unlocked
node (the component of that node's flux discrepancy) and drives them to
zero with the multivariate Newton-Raphson solver.
"""
from __future__ import annotations
from dataclasses import dataclass
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple, Union

from nodalsim.errors import (
    ElementCreationError,
    IndexOverflow,
    NoNodesInSystem,
    StudyStateError,
)
from nodalsim.linalg.matrix import Matrix
from nodalsim.solver.newton import NewtonConfig, newton_solve
from .element import ElementKind, GainLike, GenericElement
from .graph import NodalGraph
from .node import GenericNode

logger = logging.getLogger(__name__)

# Largest node index / component index an unknown can address.
INDEX_LIMIT = 2**32 - 1

ElementConstructor = Callable[[NodalGraph, int, int, GainLike], GenericElement]
ElementSpec = Union[ElementKind, ElementConstructor, str]


@dataclass(frozen=True, order=True)
class ComponentIndex:
    """Coordinate of one scalar unknown: a node and one of its potential components."""
    node: int
    component: int

    def __post_init__(self) -> None:
        for label, value in (("node", self.node), ("component", self.component)):
            if not 0 <= value <= INDEX_LIMIT:
                raise IndexOverflow(f"{label} index {value} does not fit in [0, {INDEX_LIMIT}].")


class NodalResidual:
    """
    Flux discrepancy of one potential component of one node.

    Evaluating the residual writes every unknown into the network, re-derives
    the driven potentials and returns the discrepancy component of `index`.
    """

    def __init__(self, index: ComponentIndex, graph: NodalGraph) -> None:
        self.index = index
        self._graph = graph

    def evaluate(self, unknowns: Mapping[ComponentIndex, float]) -> float:
        for idx, value in unknowns.items():
            self._graph.node(idx.node).set_component(idx.component, value)
        self._graph.settle_driven_potentials()
        return self._graph.flux_discrepancy(self.index.node)[self.index.component, 0]

    __call__ = evaluate

    def __repr__(self) -> str:
        return f"NodalResidual(node={self.index.node}, component={self.index.component})"


@dataclass(frozen=True)
class NodalAnalysisStudyResult:
    """
    Solved state of a study.

    Attributes:
        nodes: Node index -> potential vector.
        elements: Element index -> flux vector.
    """
    nodes: Mapping[int, Tuple[float, ...]]
    elements: Mapping[int, Tuple[float, ...]]

    @classmethod
    def from_graph(cls, graph: NodalGraph) -> NodalAnalysisStudyResult:
        fluxes = {i: tuple(e.get_flux(graph).to_list()) for i, e in enumerate(graph.elements)}
        potentials = {i: tuple(n.get_potential().to_list()) for i, n in enumerate(graph.nodes)}
        return cls(nodes=MappingProxyType(potentials), elements=MappingProxyType(fluxes))

    def potential(self, node: int) -> Tuple[float, ...]:
        return self.nodes[node]

    def flux(self, element: int) -> Tuple[float, ...]:
        return self.elements[element]

    def to_dict(self) -> Dict[str, Dict[str, List[float]]]:
        """Plain document form, keys stringified: ``{"nodes": {...}, "elements": {...}}``."""
        return {
            "nodes": {str(i): list(v) for i, v in self.nodes.items()},
            "elements": {str(i): list(v) for i, v in self.elements.items()},
        }


class NodalAnalysisStudy:
    """
    A study in its configuring state: nodes and boundary conditions.

    Args:
        model_type: Optional element library used to resolve element names
            once the study is built (see `nodalsim.components`).
    """

    def __init__(self, model_type: str | None = None) -> None:
        self.model_type = model_type
        self._graph: NodalGraph | None = NodalGraph()

    def _live(self) -> NodalGraph:
        if self._graph is None:
            raise StudyStateError("This study was already configured; use the BuiltStudy it returned.")
        return self._graph

    @property
    def node_count(self) -> int:
        return len(self._live().nodes)

    def add_nodes(self, count: int, components: int = 1) -> range:
        """Append `count` unlocked nodes with zero potentials; returns their indices."""
        graph = self._live()
        start = len(graph.nodes)
        for _ in range(count):
            graph.add_node(GenericNode.new(components))
        return range(start, len(graph.nodes))

    def configure_node(
        self,
        index: int,
        potential: Matrix | Sequence[float] | None = None,
        is_locked: bool | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Set the initial potential, lock flag and/or metadata of a node.

        Raises:
            MissingEndpoint: If the node does not exist.
            DimensionMismatch: If `potential` changes the number of components.
        """
        node = self._live().node(index)
        if potential is not None:
            node.set_potential(potential)
        with node.borrow_mut():
            if is_locked is not None:
                node.is_locked = bool(is_locked)
            if metadata is not None:
                node.metadata = dict(metadata)

    def ground_node(self, index: int) -> None:
        """Zero the potential of a node and lock it."""
        self._live().node(index).ground()

    def configure(self) -> BuiltStudy:
        """Freeze the node set and move on to adding elements."""
        graph = self._live()
        self._graph = None
        logger.debug("Study configured with %d nodes.", len(graph.nodes))
        return BuiltStudy(graph, self.model_type)


class BuiltStudy:
    """A study in its built state: elements, assembly and solve."""

    def __init__(self, graph: NodalGraph, model_type: str | None = None) -> None:
        self._graph = graph
        self.model_type = model_type

    @property
    def graph(self) -> NodalGraph:
        return self._graph

    @property
    def node_count(self) -> int:
        return len(self._graph.nodes)

    @property
    def element_count(self) -> int:
        return len(self._graph.elements)

    def node(self, index: int) -> GenericNode:
        return self._graph.node(index)

    def element(self, index: int) -> GenericElement:
        return self._graph.elements[index]

    def get_potential(self, index: int) -> Matrix:
        return self._graph.node(index).get_potential()

    def _build_element(self, spec: ElementSpec, input: int, output: int, gain: GainLike) -> GenericElement:
        if isinstance(spec, ElementKind):
            return GenericElement.try_new(self._graph, spec, input, output, gain)
        if isinstance(spec, str):
            from nodalsim.components import get_constructor
            spec = get_constructor(spec, self.model_type)
        element = spec(self._graph, input, output, gain)
        if not isinstance(element, GenericElement):
            raise ElementCreationError(f"Element constructor returned {type(element).__name__}.")
        return element

    def add_element(self, spec: ElementSpec, input: int, output: int, gain: GainLike) -> int:
        """
        Connect two existing nodes with an element and return its index.

        Args:
            spec: An ElementKind, an element constructor, or the registered
                name of a constructor (e.g. ``"resistor"``).
            input: Input node index.
            output: Output node index.
            gain: Gain matrix, or anything `as_gain` accepts.

        Raises:
            MissingEndpoint: If either node does not exist.
            ElementCreationError: If the element cannot be built. The study is
                left unchanged.
        """
        element = self._build_element(spec, input, output, gain)
        index = self._graph.add_element(element)
        logger.debug("Added %s element %d: %d -> %d.", element.kind.name, index, input, output)
        return index

    def _check_index_range(self) -> None:
        nodes = self._graph.nodes
        if not nodes:
            raise NoNodesInSystem()
        if len(nodes) - 1 > INDEX_LIMIT:
            raise IndexOverflow(f"{len(nodes)} nodes exceed the addressable index range.")
        widest = max(n.components for n in nodes)
        if widest - 1 > INDEX_LIMIT:
            raise IndexOverflow(f"A node with {widest} components exceeds the addressable index range.")

    def generate_system(self) -> Tuple[Dict[ComponentIndex, NodalResidual], Dict[ComponentIndex, float]]:
        """
        Assemble one residual and one initial guess per unknown.

        Unknowns are the potential components of the unlocked nodes, in node
        order then component order; guesses are the current potentials.

        Raises:
            NoNodesInSystem: If the study has no nodes.
            IndexOverflow: If a node or component index exceeds `INDEX_LIMIT`.
        """
        self._check_index_range()
        residuals: Dict[ComponentIndex, NodalResidual] = {}
        guess: Dict[ComponentIndex, float] = {}
        for n, node in enumerate(self._graph.nodes):
            if node.is_locked:
                continue
            values = node.get_potential()
            for c in range(node.components):
                idx = ComponentIndex(n, c)
                residuals[idx] = NodalResidual(idx, self._graph)
                guess[idx] = values[c, 0]
        return residuals, guess

    def solve(self, margin: float = 1e-4, limit: int = 1000) -> NodalAnalysisStudyResult:
        """
        Solve the network for the potentials of every unlocked node.

        On success the nodes keep the solved potentials. On failure every node
        gets back the potential it had before the call and the error is
        re-raised.

        Raises:
            NoNodesInSystem, IndexOverflow: From assembly.
            InvalidMargin, IterationLimitExceeded, SingularJacobian,
            EquationEvaluationError: From the solver.
        """
        residuals, guess = self.generate_system()
        cfg = NewtonConfig(margin=margin, limit=limit)
        logger.info("Solving %d unknowns over %d nodes and %d elements.",
                    len(guess), self.node_count, self.element_count)

        saved = self._graph.snapshot()
        try:
            solution = newton_solve(residuals, guess, cfg)
            for idx, value in solution.items():
                self._graph.node(idx.node).set_component(idx.component, value)
            self._graph.settle_driven_potentials()
            result = NodalAnalysisStudyResult.from_graph(self._graph)
        except Exception as exc:
            logger.warning("Solve failed (%s); node potentials restored.", exc)
            self._graph.restore(saved)
            raise
        logger.info("Solve finished.")
        return result
