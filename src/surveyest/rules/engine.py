"""
Declarative rule evaluation over a project description.

An :class:`InstructionBlock` selects at most one :class:`InstructionVariant`.
Variants are tried in a stable order of descending priority, ties broken by
declaration order, and the first whose condition holds is applied.  Blocks are
visited once, in declaration order, and never see each other's outcome.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import RuleEvaluationError, ValidationError
from ..models import AppliedBlock, WorkItem
from ..project import ProjectDescription

LOGGER = logging.getLogger(__name__)

HIGHEST = 150
MANDATORY = 100
RECOMMENDED = 50
REFERENCE = 10

PRIORITY_LEVELS: Dict[str, int] = {
    "ВЫСШИЙ": HIGHEST,
    "ОБЯЗАТЕЛЬНЫЙ": MANDATORY,
    "РЕКОМЕНДУЕМЫЙ": RECOMMENDED,
    "СПРАВОЧНЫЙ": REFERENCE,
}

IDLE = "idle"
EVALUATING = "evaluating"
COMPLETED = "completed"
FAILED = "failed"

_TRANSITIONS = {
    IDLE: (EVALUATING,),
    EVALUATING: (COMPLETED, FAILED),
}

Condition = Callable[[ProjectDescription], bool]
WorkGenerator = Callable[[ProjectDescription, "InstructionVariant"], Sequence[WorkItem]]
# Numeric parameters (grid spacing, minimum wells) or category labels such as
# an inspection complexity.
VariantValue = Union[float, str]


def priority_label(priority: int) -> str:
    """Name of the highest level not above ``priority``."""

    for label, level in sorted(PRIORITY_LEVELS.items(), key=lambda item: -item[1]):
        if priority >= level:
            return label
    return "СПРАВОЧНЫЙ"


@dataclass(frozen=True)
class NormativeReference:
    document: str
    section: str = ""

    def __str__(self) -> str:
        return f"{self.document}, {self.section}" if self.section else self.document


@dataclass(frozen=True)
class InstructionVariant:
    id: str
    priority: int
    normative: NormativeReference
    recommendation: str = ""
    condition: Optional[Condition] = None
    works: Tuple[WorkItem, ...] = ()
    generate_works: Optional[WorkGenerator] = None
    values: Dict[str, VariantValue] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    note: str = ""

    @property
    def priority_level(self) -> str:
        return priority_label(self.priority)

    def applies(self, project: ProjectDescription) -> bool:
        return True if self.condition is None else bool(self.condition(project))

    def produce(self, project: ProjectDescription) -> List[WorkItem]:
        works = list(self.works)
        if self.generate_works is not None:
            works.extend(self.generate_works(project, self))
        for work in works:
            if not isinstance(work, WorkItem):
                raise TypeError(f"variant {self.id} produced {type(work).__name__}, expected WorkItem")
        return works


@dataclass(frozen=True)
class InstructionBlock:
    id: str
    section: str
    title: str
    variants: Tuple[InstructionVariant, ...]
    condition: Optional[Condition] = None
    mandatory: bool = False
    tags: Tuple[str, ...] = ()
    dependencies: Tuple[str, ...] = ()
    conflicts: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "variants", tuple(self.variants))

    def gate(self, project: ProjectDescription) -> bool:
        return True if self.condition is None else bool(self.condition(project))

    def ordered_variants(self) -> List[InstructionVariant]:
        ranked = sorted(enumerate(self.variants), key=lambda item: (-item[1].priority, item[0]))
        return [variant for _, variant in ranked]


@dataclass(frozen=True)
class EngineOptions:
    strict_mode: bool = False
    auto_select_highest_priority: bool = True
    enable_logging: bool = False
    include_reference_variants: bool = True


@dataclass(frozen=True)
class EvaluationResult:
    work_items: Tuple[WorkItem, ...]
    applied_blocks: Tuple[AppliedBlock, ...]
    warnings: Tuple[str, ...]
    recommendations: Tuple[str, ...]
    conflicts: Tuple[str, ...] = ()
    skipped_blocks: Tuple[str, ...] = ()
    state: str = COMPLETED


ProjectInput = Union[ProjectDescription, Mapping[str, Any]]


def validate_input(project: ProjectInput) -> ProjectDescription:
    """Precondition gate: raise :class:`ValidationError` before any block runs."""

    if isinstance(project, ProjectDescription):
        return project.validate()
    if isinstance(project, Mapping):
        return ProjectDescription.from_dict(project)
    raise ValidationError(f"Unsupported project description type: {type(project).__name__}")


class RuleEngine:
    """Evaluates a fixed, ordered set of instruction blocks."""

    def __init__(self, blocks: Iterable[InstructionBlock], options: Optional[EngineOptions] = None) -> None:
        self.blocks: Tuple[InstructionBlock, ...] = tuple(blocks)
        self.options = options or EngineOptions()
        seen = set()
        for block in self.blocks:
            if block.id in seen:
                raise RuleEvaluationError(block.id, {}, ValueError("duplicate instruction block id"))
            seen.add(block.id)

    def evaluate(self, project: ProjectInput) -> EvaluationResult:
        return _Evaluation(self.blocks, self.options).run(project)


def evaluate(
    blocks: Iterable[InstructionBlock],
    project: ProjectInput,
    options: Optional[EngineOptions] = None,
) -> EvaluationResult:
    return RuleEngine(blocks, options).evaluate(project)


class _Evaluation:
    """Per-call state: created for one ``evaluate`` call and discarded afterwards."""

    def __init__(self, blocks: Tuple[InstructionBlock, ...], options: EngineOptions) -> None:
        self.blocks = blocks
        self.options = options
        self.state = IDLE
        self.works: List[WorkItem] = []
        self.applied: List[AppliedBlock] = []
        self.warnings: List[str] = []
        self.recommendations: List[str] = []
        self.conflicts: List[str] = []
        self.skipped: List[str] = []

    def _transition(self, target: str) -> None:
        if target not in _TRANSITIONS.get(self.state, ()):
            raise RuntimeError(f"Invalid rule evaluation transition {self.state} -> {target}")
        self.state = target

    def _log(self, message: str, *args: object) -> None:
        if self.options.enable_logging:
            LOGGER.info(message, *args)

    def run(self, project: ProjectInput) -> EvaluationResult:
        description = validate_input(project)
        self._transition(EVALUATING)
        self._log("Evaluating %d instruction blocks for %s", len(self.blocks), description.project_name)
        try:
            for block in self.blocks:
                self._evaluate_block(block, description)
        except RuleEvaluationError as exc:
            self._transition(FAILED)
            LOGGER.error("Rule evaluation failed in block %s: %s", exc.block_id, exc)
            raise
        self._check_relations()
        self._transition(COMPLETED)
        self._log(
            "Rule evaluation completed: %d blocks applied, %d skipped, %d works",
            len(self.applied),
            len(self.skipped),
            len(self.works),
        )
        return EvaluationResult(
            work_items=tuple(self.works),
            applied_blocks=tuple(self.applied),
            warnings=tuple(self.warnings),
            recommendations=tuple(self.recommendations),
            conflicts=tuple(self.conflicts),
            skipped_blocks=tuple(self.skipped),
            state=self.state,
        )

    def _candidates(self, block: InstructionBlock) -> List[InstructionVariant]:
        if self.options.auto_select_highest_priority:
            candidates = block.ordered_variants()
        else:
            candidates = list(block.variants)
        if not self.options.include_reference_variants:
            candidates = [variant for variant in candidates if variant.priority > REFERENCE]
        return candidates

    def _evaluate_block(self, block: InstructionBlock, project: ProjectDescription) -> None:
        try:
            if not block.variants:
                raise ValueError("block declares no variants")
            if not block.gate(project):
                self.skipped.append(block.id)
                self._log("  %s: conditions not met, skipped", block.id)
                return
            applicable = [variant for variant in self._candidates(block) if variant.applies(project)]
            if not applicable:
                if self.options.strict_mode and block.mandatory:
                    self.warnings.append(f"Block {block.id}: no applicable variants")
                self._log("  %s: no applicable variants", block.id)
                return
            chosen = applicable[0]
            works = chosen.produce(project)
        except Exception as exc:
            raise RuleEvaluationError(block.id, project.to_dict(), exc) from exc

        self.works.extend(works)
        self.applied.append(
            AppliedBlock(
                block_id=block.id,
                variant_id=chosen.id,
                normative=str(chosen.normative),
                alternatives=len(applicable) - 1,
            )
        )
        self.warnings.extend(chosen.warnings)
        self.recommendations.extend(chosen.recommendations)
        if len(applicable) > 1:
            self.recommendations.append(
                f"Block {block.id}: {len(applicable) - 1} alternative variant(s) available"
            )
        self._log("  %s: applied %s (%s), %d works", block.id, chosen.id, chosen.priority_level, len(works))

    def _check_relations(self) -> None:
        applied_ids = {entry.block_id for entry in self.applied}
        reported = set()
        for block in self.blocks:
            if block.id not in applied_ids:
                continue
            for dependency in block.dependencies:
                if dependency not in applied_ids:
                    self.warnings.append(f"Block {block.id}: dependency {dependency} was not applied")
            for other in block.conflicts:
                pair = tuple(sorted((block.id, other)))
                if other in applied_ids and pair not in reported:
                    reported.add(pair)
                    self.conflicts.append(f"Block {pair[0]} conflicts with {pair[1]}")


__all__ = [
    "COMPLETED",
    "EVALUATING",
    "FAILED",
    "IDLE",
    "HIGHEST",
    "MANDATORY",
    "RECOMMENDED",
    "REFERENCE",
    "PRIORITY_LEVELS",
    "VariantValue",
    "EngineOptions",
    "EvaluationResult",
    "InstructionBlock",
    "InstructionVariant",
    "NormativeReference",
    "RuleEngine",
    "evaluate",
    "priority_label",
    "validate_input",
]
