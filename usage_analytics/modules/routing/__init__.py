"""
Task routing module.

Provides:
- TaskClassifier: ordered (keywords -> task type) rule table, first match wins
- DEFAULT_RULES: the built-in rule table
"""

from usage_analytics.modules.routing.schemas import TaskClassification, TaskRule
from usage_analytics.modules.routing.task_classifier import DEFAULT_RULES, TaskClassifier

__all__ = [
    "TaskClassifier",
    "TaskClassification",
    "TaskRule",
    "DEFAULT_RULES",
]
