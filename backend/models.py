from typing import Literal, Optional

from pydantic import BaseModel, Field


class InputSnapshot(BaseModel):
    """Last recorded input state of one controller.

    Codes that were never recorded read as 0 / False.
    """

    axes: dict[int, int] = Field(default_factory=dict)
    buttons: dict[int, bool] = Field(default_factory=dict)

    def axis(self, code: int) -> int:
        return self.axes.get(code, 0)

    def button(self, code: int) -> bool:
        return self.buttons.get(code, False)


class SupervisorEvent(BaseModel):
    kind: Literal["timeout", "disposed"]
    identity: str


class CorrelationReport(BaseModel):
    """One joystick node as seen by a discovery pass (used by the probe script)."""

    device_path: str
    identity: Optional[str] = None
    duplicate: bool = False
    connected: bool = False
