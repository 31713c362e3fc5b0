"""Schemas for task classification."""
from typing import List, Optional

from pydantic import Field

from usage_analytics.types import ConfiguredBaseModel


class TaskRule(ConfiguredBaseModel):
    """Keyword rule mapping a message to a task category"""
    name: str
    task_type: str
    keywords: List[str] = Field(min_length=1)
    tools: List[str] = []


class TaskClassification(ConfiguredBaseModel):
    """Outcome of classifying one message"""
    task_type: str
    confidence: float
    tools: List[str] = []
    rule: Optional[str] = None  # None when the fallback applied


class ClassifyRequest(ConfiguredBaseModel):
    message: str
