from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class EnhancementResult:
    """
    Outcome of one enhance call.

    image_ref is always usable: the encoded result when *enhanced* is True,
    otherwise the caller's original reference.
    """
    image_ref: str
    enhanced: bool
    backend: Optional[str] = None               # "hardware" | "software"
    skipped: List[str] = field(default_factory=list)  # stages the backend cannot run
    error: Optional[str] = None
