"""Tests for the rule-table task classifier."""

import pytest

from usage_analytics.modules.routing import DEFAULT_RULES, TaskClassifier, TaskRule
from usage_analytics.modules.routing.task_classifier import FALLBACK_CONFIDENCE, MATCH_CONFIDENCE


class TestClassify:
    """Tests for message classification."""

    @pytest.mark.parametrize(
        "message,task_type",
        [
            ("Can you debug this function?", "code"),
            ("Please ANALYZE the quarterly numbers", "analysis"),
            ("find me a hotel in Paris", "research"),
            ("hello there", "chat"),
        ],
    )
    def test_default_rules(self, message, task_type):
        assert TaskClassifier().classify(message).task_type == task_type

    def test_first_match_wins(self):
        """Test a message matching several rules takes the earliest rule."""
        result = TaskClassifier().classify("research how to refactor this code")

        assert result.task_type == "code"
        assert result.rule == "code"
        assert result.confidence == MATCH_CONFIDENCE
        assert "code_assistant" in result.tools

    def test_fallback(self):
        result = TaskClassifier().classify("good morning")

        assert result.rule is None
        assert result.confidence == FALLBACK_CONFIDENCE
        assert result.tools == []

    def test_reordered_rules(self):
        """Test rules are evaluated in the order given."""
        classifier = TaskClassifier(list(reversed(DEFAULT_RULES)))
        assert classifier.classify("research how to refactor this code").task_type == "research"

    def test_custom_rules(self):
        classifier = TaskClassifier([TaskRule(name="math", task_type="math", keywords=["integral"])])
        assert classifier.classify("solve this integral").task_type == "math"


class TestFromYaml:
    """Tests for loading rules from YAML."""

    def test_load_rules(self, tmp_path):
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text(
            "rules:\n"
            "  - name: translate\n"
            "    task_type: translation\n"
            "    keywords: [translate, traduire]\n"
            "    tools: [translator]\n"
        )

        classifier = TaskClassifier.from_yaml(str(rules_file))

        result = classifier.classify("Translate this to French")
        assert result.task_type == "translation"
        assert result.tools == ["translator"]

    def test_missing_file_uses_defaults(self, tmp_path):
        classifier = TaskClassifier.from_yaml(str(tmp_path / "missing.yaml"))
        assert classifier.rules == DEFAULT_RULES

    def test_empty_file_uses_defaults(self, tmp_path):
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text("")

        assert TaskClassifier.from_yaml(str(rules_file)).rules == DEFAULT_RULES

    def test_invalid_rule(self, tmp_path):
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text("rules:\n  - name: broken\n    task_type: code\n    keywords: []\n")

        with pytest.raises(ValueError, match="Invalid task rules"):
            TaskClassifier.from_yaml(str(rules_file))
