"""Orchestration and background-work components."""

from src.pipeline.chat_orchestrator import ChatOrchestrator
from src.pipeline.job_store import JobStore
from src.pipeline.task_processor import BackgroundTaskProcessor
from src.pipeline.task_queue import BackgroundTaskQueue, WorkItem

__all__ = [
    "BackgroundTaskProcessor",
    "BackgroundTaskQueue",
    "ChatOrchestrator",
    "JobStore",
    "WorkItem",
]
