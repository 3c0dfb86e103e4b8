"""Frozen base for the outcome and report models."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable model exchanged with the isolated interpreter as JSON.

    Dumped reports carry their computed counts; those keys are dropped again
    when the report is validated on the host side.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")
