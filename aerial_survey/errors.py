"""
errors.py - Fatal conditions raised by the survey pipeline

Every error carries the pipeline stage that raised it and, where it applies,
the positions of the records or polygons that triggered it so the source row
can be located. Join failures are not errors; they are reported through the
Join_Count field of the joined layer.
"""

from typing import Dict, List, Optional, Sequence


class SurveyPipelineError(Exception):
    """Base class for all fatal pipeline conditions."""

    stage = "pipeline"

    def __init__(self, message: str, positions: Optional[Sequence[int]] = None):
        super().__init__(message)
        self.positions: List[int] = list(positions or [])

    def __str__(self) -> str:
        return f"[{self.stage}] {self.args[0]}"


class MalformedInputError(SurveyPipelineError):
    """Header is not unique or a mandatory field is missing."""

    stage = "normalize"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage:
            self.stage = stage


class MalformedCoordinateError(SurveyPipelineError):
    """A record's longitude or latitude is not a finite number."""

    stage = "points"

    def __init__(self, message: str, positions: Sequence[int], values: Optional[Dict[int, tuple]] = None):
        super().__init__(message, positions)
        self.values = values or {}


class InvalidGeometryError(SurveyPipelineError):
    """A boundary polygon could not be repaired into valid polygonal geometry."""

    stage = "polygons"


class ReferenceSystemError(SurveyPipelineError):
    """A layer's reference system is undefined or cannot be transformed."""

    stage = "polygons"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage:
            self.stage = stage


class FieldNameCollisionError(SurveyPipelineError):
    """Truncating field names would make two of them identical."""

    stage = "points"

    def __init__(self, message: str, collisions: Dict[str, List[str]], stage: Optional[str] = None):
        super().__init__(message)
        self.collisions = collisions
        if stage:
            self.stage = stage
