"""arq worker settings module.

Import path for arq CLI: arq dancehub.workers.settings.WorkerSettings
"""

from __future__ import annotations

from dancehub.workers.achievements import WorkerSettings

__all__ = ["WorkerSettings"]
