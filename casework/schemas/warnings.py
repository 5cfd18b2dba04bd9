"""Warning value object attached to cases and generated documents."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from casework.schemas.enums import WarningCategory, WarningSeverity


class AttorneyWarning(BaseModel):
    """A severity-ranked risk flag derived by a warning rule."""
    model_config = ConfigDict(frozen=True)

    severity: WarningSeverity
    category: WarningCategory
    message: str
    recommendation: str
    rule: Optional[str] = None
