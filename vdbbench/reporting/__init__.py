"""
Reporting module for benchmark results.

Provides:
    - numbered run directories with open/close markers
    - offline recall/precision evaluation of result logs
"""

from vdbbench.reporting.evaluator import RecallEvaluator, evaluate_reports
from vdbbench.reporting.writer import ResourceWriter

__all__ = [
    "RecallEvaluator",
    "ResourceWriter",
    "evaluate_reports",
]
