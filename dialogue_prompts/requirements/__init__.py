"""
Requirement language: expression trees and their evaluation
"""

from .evaluator import (
    Evaluation,
    InteractiveCheck,
    check_modifier,
    describe,
    evaluate,
    evaluate_passive,
    explain_lock,
)
from .model import AllOf, AnyOf, Not, Requirement, RequirementLeaf, parse_requirement

__all__ = [
    "Evaluation",
    "InteractiveCheck",
    "check_modifier",
    "describe",
    "evaluate",
    "evaluate_passive",
    "explain_lock",
    "AllOf",
    "AnyOf",
    "Not",
    "Requirement",
    "RequirementLeaf",
    "parse_requirement",
]
