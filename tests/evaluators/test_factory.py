"""
Tests for factory.py - Evaluator wiring and host-style turn evaluation.
"""
from unittest.mock import Mock, patch

import pytest

from config.config import AppConfig
from evaluators.factory import EvaluatorFactory
from evaluators.models import SessionState
from evaluators.persistence import InMemoryMemoryStore
from tests.fixtures.core import FakeGateway, agent_turn, model_output, user_turn

LESSON = {"text": "Use smaller PRs", "category": "task-estimation", "confidence": 0.8}


class TestWiring:
    """Tests enforce which evaluators and stores the factory builds."""

    def test_builds_all_enabled_evaluators_in_order(self, app_config):
        """CONTRACT: Enabled evaluators are registered lesson, fact, personality."""
        factory = EvaluatorFactory(app_config, llm_provider=FakeGateway())

        assert [e.name for e in factory.evaluators] == [
            "LESSON_EXTRACTOR",
            "FACT_EXTRACTOR",
            "PERSONALITY_EXTRACTOR",
        ]
        assert isinstance(factory.memory_store, InMemoryMemoryStore)

    def test_disabled_evaluators_are_skipped(self):
        """CONTRACT: enabled=False removes an evaluator."""
        config = AppConfig.model_validate({"facts": {"enabled": False}, "personality": {"enabled": False}})

        factory = EvaluatorFactory(config, llm_provider=FakeGateway())

        assert [e.name for e in factory.evaluators] == ["LESSON_EXTRACTOR"]

    def test_shares_gateway_and_store(self, app_config):
        """CONTRACT: Every evaluator uses the factory's gateway and store."""
        gateway = FakeGateway()
        store = InMemoryMemoryStore()

        factory = EvaluatorFactory(app_config, llm_provider=gateway, memory_store=store)

        assert all(e.gateway is gateway and e.memory_store is store for e in factory.evaluators)

    def test_postgres_backend_requires_database_url(self, monkeypatch):
        """CONTRACT: Selecting postgres without a DSN fails at construction."""
        monkeypatch.delenv("DATABASE_URL", raising=False)
        config = AppConfig.model_validate({"storage": {"backend": "postgres"}})

        with pytest.raises(ValueError, match="DATABASE_URL"):
            EvaluatorFactory(config, llm_provider=FakeGateway())

    def test_postgres_backend_wires_session_manager(self, monkeypatch):
        """CONTRACT: The postgres backend ensures its schema and is released on cleanup."""
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/evaluators")
        config = AppConfig.model_validate({"storage": {"backend": "postgres", "pool_max_connections": 3}})

        with patch("evaluators.factory.DatabaseSessionManager") as manager_cls, \
                patch("evaluators.factory.PostgresMemoryStore") as store_cls:
            factory = EvaluatorFactory(config, llm_provider=FakeGateway())
            factory.cleanup()

        manager_cls.assert_called_once_with("postgresql://localhost/evaluators", max_connections=3)
        store_cls.return_value.ensure_schema.assert_called_once()
        manager_cls.return_value.cleanup.assert_called_once()


class TestEvaluateTurn:
    """Tests enforce validate-then-handle per evaluator."""

    def test_only_triggered_evaluators_run(self, app_config):
        """CONTRACT: A user completion notice runs lessons only."""
        gateway = FakeGateway([model_output(LESSON)])
        factory = EvaluatorFactory(app_config, llm_provider=gateway)

        results = factory.evaluate_turn(user_turn("Task completed! PR merged."), SessionState())

        assert list(results) == ["LESSON_EXTRACTOR"]
        assert results["LESSON_EXTRACTOR"].stored_count == 1
        assert gateway.call_count == 1

    def test_agent_response_runs_fact_extractor(self, app_config):
        """CONTRACT: A substantive agent response reaches the fact extractor."""
        gateway = FakeGateway([model_output({"fact": "Billing service is written in Go"})])
        factory = EvaluatorFactory(app_config, llm_provider=gateway)

        results = factory.evaluate_turn(
            agent_turn("The billing service is written in Go, as you mentioned."), SessionState()
        )

        assert "FACT_EXTRACTOR" in results
        assert results["FACT_EXTRACTOR"].records[0].text == "Billing service is written in Go"

    def test_nothing_runs_for_plain_greeting(self, app_config):
        """CONTRACT: No signal means no results and no model calls."""
        gateway = FakeGateway()
        factory = EvaluatorFactory(app_config, llm_provider=gateway)

        assert factory.evaluate_turn(user_turn("hello"), SessionState()) == {}
        assert gateway.call_count == 0

    def test_cleanup_without_database_is_noop(self, app_config):
        factory = EvaluatorFactory(app_config, llm_provider=Mock())
        factory.cleanup()
