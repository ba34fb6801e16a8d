from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Real
from typing import Sequence, Tuple, TYPE_CHECKING
import numpy as np

from nodalsim.errors import DimensionMismatch, ElementCreationError
from nodalsim.linalg.matrix import Matrix

if TYPE_CHECKING:
    from nodalsim.network.graph import NodalGraph

GainLike = Matrix | float | Sequence[float] | Sequence[Sequence[float]]


def as_gain(value: GainLike) -> Matrix:
    """
    Normalize a gain given as a Matrix, a number, a flat list (column vector)
    or nested rows into a Matrix.
    """
    if isinstance(value, Matrix):
        return value.clone()
    if isinstance(value, Real):
        return Matrix.from_col_vec([float(value)])
    try:
        items = list(value)
        if items and all(isinstance(v, Real) for v in items):
            return Matrix.from_col_vec(items)
        return Matrix.from_rows([list(r) for r in items])
    except (TypeError, DimensionMismatch) as exc:
        raise ElementCreationError(f"Invalid gain {value!r}: {exc}") from exc


def column_gain(gain: Matrix, components: int, what: str) -> Matrix:
    """Accept an n x 1 gain, or a 1 x 1 gain repeated over the n components."""
    if gain.shape == (components, 1):
        return gain.clone()
    if gain.shape == (1, 1):
        return Matrix.from_col_vec([gain[0, 0]] * components)
    raise ElementCreationError(
        f"{what} gain must be {components}x1 (or 1x1), got {gain.rows}x{gain.cols}."
    )


def _potentials(element: GenericElement, graph: NodalGraph) -> Tuple[Matrix, Matrix]:
    with graph.node(element.input).borrow() as inode:
        v_in = inode.potential.clone()
    with graph.node(element.output).borrow() as onode:
        v_out = onode.potential.clone()
    return v_in, v_out


class ElementKind(ABC):
    """
    Physics of an element: how its flux follows from the potentials of the
    nodes it connects.

    Flux is positive when it travels from the input node to the output node.
    By default an element enters the balance of both endpoints: it adds its
    flux at the output node and removes it at the input node.
    """
    name: str = "element"
    drives_potential: bool = False

    def check_gain(self, gain: Matrix, components: int) -> Matrix:
        """Validate (and possibly reshape) the gain for nodes with `components` rows."""
        return column_gain(gain, components, self.name)

    def plan(self, graph: NodalGraph, input: int, output: int) -> bool:
        """Return the `drives_output` flag for a new element; may refuse the element."""
        return False

    def endpoints(self, element: GenericElement) -> Tuple[int, ...]:
        """Nodes whose flux balance includes this element."""
        return (element.input, element.output)

    def attach(self, element: GenericElement, graph: NodalGraph) -> None:
        """Called once when the element joins the network."""

    @abstractmethod
    def flux(self, element: GenericElement, graph: NodalGraph) -> Matrix:
        """Flux from the input node to the output node."""

    def contribution(self, element: GenericElement, graph: NodalGraph, node_index: int) -> Matrix:
        """Signed term this element adds to the flux discrepancy of `node_index`."""
        f = self.flux(element, graph)
        return f if node_index == element.output else -f

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ConductiveKind(ElementKind):
    """Linear conduction: flux = G (V_in - V_out)."""
    name = "conductive"

    def check_gain(self, gain: Matrix, components: int) -> Matrix:
        if gain.shape == (components, components):
            return gain.clone()
        if gain.shape == (1, 1):
            return gain[0, 0] * Matrix.identity(components)
        raise ElementCreationError(
            f"{self.name} gain must be {components}x{components} (or 1x1), got {gain.rows}x{gain.cols}."
        )

    def flux(self, element: GenericElement, graph: NodalGraph) -> Matrix:
        v_in, v_out = _potentials(element, graph)
        return element.gain @ (v_in - v_out)


class ConstantFluxKind(ElementKind):
    """A fixed flux, whatever the potentials are."""
    name = "constant_flux"

    def flux(self, element: GenericElement, graph: NodalGraph) -> Matrix:
        return element.gain.clone()


class OrificeKind(ElementKind):
    """Square-root law: flux_k = g_k sign(dV_k) sqrt(|dV_k|), dV = V_in - V_out."""
    name = "orifice"

    def flux(self, element: GenericElement, graph: NodalGraph) -> Matrix:
        v_in, v_out = _potentials(element, graph)
        dv = (v_in - v_out).as_array()[:, 0]
        g = element.gain.as_array()[:, 0]
        return Matrix.from_col_vec(g * np.sign(dv) * np.sqrt(np.abs(dv)))


class PotentialDriveKind(ElementKind):
    """
    Imposes ``V_out = V_in + gain`` (a voltage source, a temperature step, a pump).

    The element removes one node from the unknowns: it locks the output node,
    or the input node when the output is already locked, and re-derives that
    node's potential from the other endpoint. A driven input is set to
    ``V_out - gain``, not ``V_out + gain``, so the sign of `gain` means the same
    thing whichever endpoint is driven. It only takes part in the flux
    balance of the dominant (non-driven) endpoint, and its flux is whatever
    keeps the driven node balanced.
    """
    name = "potential_drive"
    drives_potential = True

    def plan(self, graph: NodalGraph, input: int, output: int) -> bool:
        in_locked = graph.node(input).is_locked
        out_locked = graph.node(output).is_locked
        if in_locked and out_locked:
            raise ElementCreationError(
                f"Cannot drive a potential between nodes {input} and {output}: both are locked."
            )
        return not out_locked

    def endpoints(self, element: GenericElement) -> Tuple[int, ...]:
        return (element.dominant,)

    def attach(self, element: GenericElement, graph: NodalGraph) -> None:
        graph.node(element.driven).lock()
        self.sync(element, graph)

    def sync(self, element: GenericElement, graph: NodalGraph) -> bool:
        """Re-derive the driven node's potential; True if it changed."""
        with graph.node(element.dominant).borrow() as dom:
            base = dom.potential.clone()
        target = base + element.gain if element.drives_output else base - element.gain
        with graph.node(element.driven).borrow_mut() as sub:
            changed = sub.potential != target
            sub.potential = target
        return changed

    def flux(self, element: GenericElement, graph: NodalGraph) -> Matrix:
        with graph.resolving(element.driven):
            discrepancy = graph.flux_discrepancy(element.driven)
        return -discrepancy if element.drives_output else discrepancy


CONDUCTIVE = ConductiveKind()
CONSTANT_FLUX = ConstantFluxKind()
ORIFICE = OrificeKind()
POTENTIAL_DRIVE = PotentialDriveKind()


@dataclass
class GenericElement:
    """
    A directed relation between two nodes of a `NodalGraph`.

    The element stores node indices, never node objects; the graph resolves
    them whenever a flux is needed.

    Attributes:
        kind: ElementKind implementing the physics.
        input: Index of the input node.
        output: Index of the output node.
        gain: Parameter matrix of the element (conductance, fixed flux, ...).
        drives_output: For potential-driving kinds, whether the output node is
            the driven one.
    """
    kind: ElementKind
    input: int
    output: int
    gain: Matrix
    drives_output: bool = False

    @classmethod
    def try_new(cls, graph: NodalGraph, kind: ElementKind, input: int, output: int,
                gain: GainLike) -> GenericElement:
        """
        Validate and build an element without touching the graph.

        Raises:
            MissingEndpoint: If either node index does not exist.
            ElementCreationError: If the element cannot connect these nodes
                with this gain.
        """
        n_in = graph.node(input).components
        n_out = graph.node(output).components
        if input == output:
            raise ElementCreationError(f"An element cannot connect node {input} to itself.")
        if n_in != n_out:
            raise ElementCreationError(
                f"Nodes {input} and {output} have {n_in} and {n_out} potential components."
            )
        checked = kind.check_gain(as_gain(gain), n_in)
        drives_output = kind.plan(graph, input, output)
        return cls(kind=kind, input=input, output=output, gain=checked, drives_output=drives_output)

    @property
    def driven(self) -> int:
        return self.output if self.drives_output else self.input

    @property
    def dominant(self) -> int:
        return self.input if self.drives_output else self.output

    def get_flux(self, graph: NodalGraph) -> Matrix:
        return self.kind.flux(self, graph)
