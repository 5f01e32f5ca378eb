"""
Option results: effect model and the pipeline that runs them
"""

from dialogue_prompts.results.model import (
    RUN_ALWAYS,
    RUN_ON_FAIL,
    RUN_ON_PASS,
    ResultEffect,
    parse_results,
    should_run,
)

__all__ = [
    "RUN_ALWAYS",
    "RUN_ON_FAIL",
    "RUN_ON_PASS",
    "ResultEffect",
    "parse_results",
    "should_run",
]
