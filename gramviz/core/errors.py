from __future__ import annotations


class GramvizError(Exception):
    """Base error for the build/render pipeline."""


class SpecificationError(GramvizError, ValueError):
    """Raised when a specification cannot be built (reported before any build work)."""


class AestheticEvaluationError(GramvizError):
    """Raised when an aesthetic expression cannot be evaluated against a table."""


class TableContractError(GramvizError):
    """Raised when a mandatory column is missing or incomplete at a stage boundary."""


class ScaleFrozenError(GramvizError):
    """Raised when a scale is trained or reset after the build has completed."""


class ProtoStateError(GramvizError, AttributeError):
    """Raised on attempts to mutate a component instance."""


class GramvizWarning(UserWarning):
    """Base warning for degraded-but-continues conditions."""


class MissingValueWarning(GramvizWarning):
    """Rows were removed because required values were missing."""


class LinearCoordWarning(GramvizWarning):
    """An encoding that needs a linear coordinate system was used with a non-linear one."""
