"""Rule-table task classifier, optionally loaded from YAML."""
import os
from typing import List, Optional, Sequence

import yaml
from pydantic import ValidationError

from usage_analytics.logger import logger
from usage_analytics.modules.routing.schemas import TaskClassification, TaskRule

MATCH_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.5
FALLBACK_TASK_TYPE = "chat"

# Evaluated top to bottom; first match wins.
DEFAULT_RULES: List[TaskRule] = [
    TaskRule(
        name="code",
        task_type="code",
        keywords=["code", "function", "debug", "refactor"],
        tools=["code_assistant", "document_processor"],
    ),
    TaskRule(
        name="analysis",
        task_type="analysis",
        keywords=["analyze", "research", "compare", "evaluate"],
        tools=["web_research", "document_processor"],
    ),
    TaskRule(
        name="research",
        task_type="research",
        keywords=["search", "find", "lookup"],
        tools=["web_research"],
    ),
]


class TaskClassifier:
    """Classifier that matches messages against an ordered rule table"""

    def __init__(self, rules: Optional[Sequence[TaskRule]] = None):
        """
        Initialize classifier.

        Args:
            rules: Ordered rules; defaults to DEFAULT_RULES
        """
        self.rules: List[TaskRule] = list(rules if rules is not None else DEFAULT_RULES)

    @classmethod
    def from_yaml(cls, rules_path: str) -> "TaskClassifier":
        """
        Load rules from a YAML file of the form ``rules: [{name, task_type, keywords, tools}]``.

        Falls back to the default rules when the file is missing or empty.
        """
        if not os.path.exists(rules_path):
            logger.warning(f"Rules file not found: {rules_path}, using defaults")
            return cls()

        with open(rules_path, "r") as f:
            rules_data = yaml.safe_load(f)

        if not rules_data or not rules_data.get("rules"):
            logger.warning(f"No rules found in {rules_path}, using defaults")
            return cls()

        try:
            rules = [TaskRule(**rule) for rule in rules_data["rules"]]
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid task rules in {rules_path}: {e}") from e

        logger.info(f"Loaded {len(rules)} task rules from {rules_path}")
        return cls(rules)

    @staticmethod
    def _matches(rule: TaskRule, message: str) -> bool:
        return any(keyword.lower() in message for keyword in rule.keywords)

    def classify(self, message: str) -> TaskClassification:
        """
        Classify a chat message.

        Args:
            message: Raw user message

        Returns:
            TaskClassification from the first matching rule, or the chat fallback
        """
        normalized = message.lower()
        for rule in self.rules:
            if self._matches(rule, normalized):
                logger.debug(f"Message matched task rule '{rule.name}'")
                return TaskClassification(
                    task_type=rule.task_type,
                    confidence=MATCH_CONFIDENCE,
                    tools=list(rule.tools),
                    rule=rule.name,
                )

        return TaskClassification(task_type=FALLBACK_TASK_TYPE, confidence=FALLBACK_CONFIDENCE)
