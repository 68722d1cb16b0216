# application/dtos.py
from dataclasses import dataclass, asdict
from typing import Optional

@dataclass(slots=True, frozen=True)
class FrameResult:
    ok: bool
    index: int
    filename: str
    error: Optional[str] = None

    def describe(self) -> str:
        if self.ok:
            return f"{self.filename} exported"
        return f"{self.filename} not exported: {self.error}"

    def to_dict(self) -> dict:
        return asdict(self)
