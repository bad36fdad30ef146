"""Condition evaluation for branch nodes.

The evaluator is total: every input maps to ``True`` or ``False``. A broken
condition routes the run down the ``no`` branch instead of crashing it.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from .contracts import ConditionOperator
from .templates import stringify

logger = logging.getLogger(__name__)


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(stringify(value).strip())
        except (TypeError, ValueError):
            return None
    if math.isnan(number):
        return None
    return number


def evaluate_condition(left: Any, operator: ConditionOperator | str, right: Any = "") -> bool:
    """Compare a resolved ``left`` value against the literal ``right``."""
    try:
        op = ConditionOperator(operator)
    except (TypeError, ValueError):
        logger.warning(f"Unknown condition operator: {operator!r}")
        return False

    left_text = stringify(left)
    right_text = stringify(right)

    if op == ConditionOperator.EQUALS:
        return left_text == right_text
    if op == ConditionOperator.NOT_EQUALS:
        return left_text != right_text
    if op == ConditionOperator.CONTAINS:
        return right_text in left_text
    if op == ConditionOperator.IS_EMPTY:
        return left_text == ""
    if op == ConditionOperator.IS_NOT_EMPTY:
        return left_text != ""

    left_number = _to_number(left)
    right_number = _to_number(right)
    if left_number is None or right_number is None:
        return False
    if op == ConditionOperator.GREATER_THAN:
        return left_number > right_number
    if op == ConditionOperator.LESS_THAN:
        return left_number < right_number
    return False
