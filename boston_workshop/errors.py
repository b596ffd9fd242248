"""Errors raised by the workshop components.

All of them carry the offending column or parameter in ``field`` so the
workflow can report it and move on to the next experiment.
"""


class WorkshopError(ValueError):
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"[{field}] {message}")


class DataShapeError(WorkshopError):
    """Input table is malformed (missing or non-numeric columns, unexpected nulls)."""


class ConfigIncompatibleError(WorkshopError):
    """Hyperparameter or resampling setting does not fit the model family or the data."""


class SchemaMismatchError(WorkshopError):
    """Evaluation columns differ from the ones the model was trained on."""
