"""Orchestrator data models."""
from dataclasses import dataclass, field
from typing import List, Tuple

from ..models import SourceFile


@dataclass
class EnqueueResult:
    """Outcome of validating and enqueueing a set of files."""
    ids: List[str] = field(default_factory=list)
    rejected: List[Tuple[SourceFile, str]] = field(default_factory=list)

    @property
    def all_accepted(self) -> bool:
        return not self.rejected
