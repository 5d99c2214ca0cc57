"""
helmactions - upgrade and rollback actions for deployed catalog apps
"""

__version__ = "0.1.0"

from .core import ActionOrchestrator
from .errors import ActionError

__all__ = ["ActionOrchestrator", "ActionError"]
