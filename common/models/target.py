"""Target machine models."""

from __future__ import annotations

from typing import Iterable, Iterator

from pydantic import BaseModel, Field, field_validator


class Target(BaseModel):
    """A remote machine under test."""
    name: str = Field(..., min_length=1, description="Machine identifier")
    index: int = Field(..., ge=1, description="1-based concurrency index")

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Target name cannot be blank")
        return v


class TargetList(BaseModel):
    """Ordered, deduplicated set of targets for one run."""
    targets: list[Target] = Field(default_factory=list)

    model_config = {"frozen": True}

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "TargetList":
        """Build a target list, skipping blanks and later duplicates."""
        seen: set[str] = set()
        targets = []
        for raw in names:
            name = (raw or "").strip()
            if not name:
                continue
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)
            targets.append(Target(name=name, index=len(targets) + 1))
        return cls(targets=targets)

    @property
    def names(self) -> list[str]:
        return [t.name for t in self.targets]

    def __iter__(self) -> Iterator[Target]:  # type: ignore[override]
        return iter(self.targets)

    def __len__(self) -> int:
        return len(self.targets)
