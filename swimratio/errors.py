from __future__ import annotations

from typing import Optional


class SwimRatioError(RuntimeError):
    pass


class DataIntegrityError(SwimRatioError):
    """Input data cannot be normalized (bad rows, missing age-35 anchor)."""


class ModelFitFailed(SwimRatioError):
    """A candidate model could not be fit for one replicate."""

    def __init__(self, model: str, reason: str, replicate: Optional[int] = None):
        self.model = str(model)
        self.reason = str(reason)
        self.replicate = replicate
        where = f" (replicate {replicate})" if replicate is not None else ""
        super().__init__(f"{self.model} fit failed{where}: {self.reason}")

    def __reduce__(self):
        # Default exception pickling replays only the formatted message.
        return (self.__class__, (self.model, self.reason, self.replicate))


class AggregationError(SwimRatioError):
    pass


class ReplicateTimeout(SwimRatioError):
    pass
