"""Orchestrator package - queue store and sequential drain."""
from .core import QueueOrchestrator
from .models import EnqueueResult
from .store import UploadQueue

__all__ = ["QueueOrchestrator", "EnqueueResult", "UploadQueue"]
