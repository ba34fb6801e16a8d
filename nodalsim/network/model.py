from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from nodalsim.errors import ModelFormatError
from .study import BuiltStudy, NodalAnalysisStudy, NodalAnalysisStudyResult

logger = logging.getLogger(__name__)


class NodeConfiguration(BaseModel):
    """Initial state of one node."""

    model_config = {"extra": "forbid"}

    potential: List[StrictFloat] = Field(..., min_length=1, description="Initial potential, one value per component")
    is_locked: StrictBool = Field(default=False, description="Whether the potential is a boundary condition")
    metadata: Optional[Dict[str, Any]] = None


class ElementDescription(BaseModel):
    """One element, referring to its constructor by name."""

    model_config = {"extra": "forbid"}

    element_type: StrictStr
    input: StrictInt
    output: StrictInt
    gain: List[Union[StrictFloat, List[StrictFloat]]] = Field(
        ..., min_length=1, description="Flat values, or matrix rows"
    )


class NodalAnalysisModel(BaseModel):
    """
    A complete network described as plain data.

    Attributes:
        model_type: Element library the element names refer to
            (``"dc_circuit"``, ``"heat_transfer"``, ``"hydraulic"``).
        nodes: Number of nodes.
        configuration: Node index -> initial potential, lock flag and metadata.
            Nodes that are not listed start unlocked at zero.
        elements: Elements in the order they are added to the study.
    """

    model_config = {"extra": "forbid", "protected_namespaces": ()}

    model_type: StrictStr
    nodes: StrictInt = Field(..., ge=0)
    configuration: Dict[int, NodeConfiguration] = Field(default_factory=dict)
    elements: List[ElementDescription] = Field(default_factory=list)

    @field_validator("model_type")
    @classmethod
    def validate_model_type(cls, v: str) -> str:
        from nodalsim.components import model_types
        if v not in model_types():
            raise ValueError(f"Unknown model_type {v!r}; expected one of {model_types()}")
        return v

    @field_validator("configuration", "elements", mode="before")
    @classmethod
    def empty_when_null(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return {} if info.field_name == "configuration" else []
        return v

    @model_validator(mode="after")
    def validate_configuration(self) -> NodalAnalysisModel:
        """Configured nodes must exist and agree on their number of components."""
        for index in self.configuration:
            if not 0 <= index < self.nodes:
                raise ValueError(f"Configuration refers to node {index}, but there are {self.nodes} nodes")
        widths = {len(c.potential) for c in self.configuration.values()}
        if len(widths) > 1:
            raise ValueError(f"Configured nodes disagree on the number of components: {sorted(widths)}")
        return self

    @classmethod
    def from_dict(cls, doc: Mapping[str, Any]) -> NodalAnalysisModel:
        """
        Validate and parse a model document.

        Raises:
            ModelFormatError: If a field is missing, unexpected or has the wrong type.
        """
        try:
            return cls.model_validate(doc)
        except ValidationError as exc:
            raise ModelFormatError(f"Invalid model document: {exc}") from exc

    @classmethod
    def from_json(cls, text: str) -> NodalAnalysisModel:
        try:
            return cls.model_validate_json(text)
        except ValidationError as exc:
            raise ModelFormatError(f"Invalid model document: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | Path) -> NodalAnalysisModel:
        return cls.from_json(Path(path).read_text(encoding="utf-8"))

    @property
    def components(self) -> int:
        """Potential components per node, taken from the configured nodes (1 if none)."""
        for c in self.configuration.values():
            return len(c.potential)
        return 1

    def build_study(self) -> BuiltStudy:
        """Create the nodes, apply the configuration and add every element."""
        study = NodalAnalysisStudy(self.model_type)
        study.add_nodes(self.nodes, self.components)
        for index, conf in sorted(self.configuration.items()):
            study.configure_node(index, conf.potential, conf.is_locked, conf.metadata)
        built = study.configure()
        for e in self.elements:
            built.add_element(e.element_type, e.input, e.output, e.gain)
        logger.debug("Built %s model: %d nodes, %d elements.", self.model_type, self.nodes, len(self.elements))
        return built

    def run_study(self, margin: float = 1e-4, limit: int = 1000) -> NodalAnalysisStudyResult:
        return self.build_study().solve(margin=margin, limit=limit)

    def to_dict(self) -> Dict[str, Any]:
        """Document form; configuration keys become strings as in JSON."""
        doc = self.model_dump()
        doc["configuration"] = {str(i): c for i, c in doc["configuration"].items()}
        return doc
