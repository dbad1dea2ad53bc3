"""Instruction blocks and the engine that evaluates them."""
from __future__ import annotations

from .catalog import BLOCKS_2025, DEFAULT_RULE_SET, RULE_SETS, get_rule_set
from .engine import (
    HIGHEST,
    MANDATORY,
    RECOMMENDED,
    REFERENCE,
    EngineOptions,
    EvaluationResult,
    InstructionBlock,
    InstructionVariant,
    NormativeReference,
    RuleEngine,
    evaluate,
)

__all__ = [
    "BLOCKS_2025",
    "DEFAULT_RULE_SET",
    "RULE_SETS",
    "HIGHEST",
    "MANDATORY",
    "RECOMMENDED",
    "REFERENCE",
    "EngineOptions",
    "EvaluationResult",
    "InstructionBlock",
    "InstructionVariant",
    "NormativeReference",
    "RuleEngine",
    "evaluate",
    "get_rule_set",
]
