"""
Background task helpers.
"""

from common.tasks.detached import DetachedTaskRunner

__all__ = ["DetachedTaskRunner"]
