"""Application stages and their funnel order"""

from enum import Enum
from typing import Any


class Stage(str, Enum):
    """Application progress stage, declared in funnel order"""
    APPLIED = "Applied"
    FIRST_NEXT_STEP = "First next step"
    PASSED_NEXT_STEP = "Passed next step"
    INTERVIEW = "Interview"
    OFFER_RECEIVED = "Offer received"


STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)

DEFAULT_STAGE = Stage.APPLIED


def stage_index(status: Any) -> int:
    """Position of a status in the funnel, or -1 if it is not a known stage"""
    if isinstance(status, Stage):
        return STAGE_ORDER.index(status)
    try:
        return STAGE_ORDER.index(Stage(status))
    except ValueError:
        return -1


def parse_stage(value: Any) -> Stage:
    """Convert a status string to a Stage, raising ValueError if unknown"""
    if isinstance(value, Stage):
        return value
    return Stage(str(value).strip())
