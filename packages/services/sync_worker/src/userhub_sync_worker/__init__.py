"""userhub sync worker: runs the CDC pipeline against Kafka and MongoDB."""

from __future__ import annotations

from .bootstrap import SyncWorker, build_worker, run_sync_worker

__all__ = ["SyncWorker", "build_worker", "run_sync_worker"]
