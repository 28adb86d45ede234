"""
Tests for fact_extractor.py - Facts from the agent's own responses.
"""
import pytest

from config.config import FactExtractionConfig
from evaluators.fact_extractor import FactExtractor
from evaluators.models import SessionState
from evaluators.persistence import MemoryStoreError
from tests.fixtures.core import PROMPTS_DIR, FakeGateway, agent_turn, model_output, user_turn

LONG_RESPONSE = "Noted: the billing service is written in Go and deployed on Fly.io."


@pytest.fixture
def make_extractor(memory_store, mock_logger):
    def _make(gateway, **overrides):
        config = FactExtractionConfig(**overrides)
        return FactExtractor.from_config(config, PROMPTS_DIR, gateway, memory_store, logger=mock_logger)
    return _make


class TestFactTrigger:
    """Tests enforce that only substantive agent responses reach the model."""

    def test_user_turn_never_calls_gateway(self, make_extractor):
        """CONTRACT: User-authored turns are ignored."""
        gateway = FakeGateway()
        extractor = make_extractor(gateway)
        turn = user_turn(LONG_RESPONSE)

        assert not extractor.validate(turn, SessionState())
        extractor.handle(turn, SessionState())

        assert gateway.call_count == 0

    def test_short_agent_turn_never_calls_gateway(self, make_extractor):
        """CONTRACT: Agent responses under the minimum length are ignored."""
        gateway = FakeGateway()
        extractor = make_extractor(gateway)

        extractor.handle(agent_turn("Sure thing."), SessionState())

        assert gateway.call_count == 0

    def test_only_telegram_responses_by_default(self, make_extractor):
        """CONTRACT: With default config, responses from other sources are ignored."""
        gateway = FakeGateway()
        extractor = make_extractor(gateway)

        assert extractor.validate(agent_turn(LONG_RESPONSE), SessionState())
        assert not extractor.validate(agent_turn(LONG_RESPONSE, source="discord"), SessionState())
        assert not extractor.validate(agent_turn(LONG_RESPONSE, source=None), SessionState())

    def test_empty_source_list_accepts_any_source(self, make_extractor):
        """CONTRACT: An explicitly empty allow-list listens everywhere."""
        extractor = make_extractor(FakeGateway(), allowed_sources=[])

        assert extractor.validate(agent_turn(LONG_RESPONSE, source="discord"), SessionState())


class TestFactExtraction:
    """Tests enforce storage of facts with fuzzy de-duplication."""

    def test_stores_facts_with_fact_type(self, make_extractor, memory_store):
        """CONTRACT: Accepted facts are stored under the 'fact' type at low temperature."""
        gateway = FakeGateway([model_output(
            {"fact": "Billing service is written in Go", "project": "billing"},
            {"fact": "ok"},
        )])
        extractor = make_extractor(gateway)

        result = extractor.handle(agent_turn(LONG_RESPONSE), SessionState())

        assert gateway.calls[0]["temperature"] == 0.1
        assert [r.text for r in result.records] == ["Billing service is written in Go"]
        entry = memory_store.entries[0]
        assert entry.metadata["type"] == "fact"
        assert entry.metadata["project"] == "billing"
        assert entry.metadata["source"] == "fact_extractor"

    def test_skips_fact_already_on_file(self, make_extractor, memory_store):
        """CONTRACT: Near-duplicates of stored facts are neither stored nor returned."""
        memory_store.store("Billing service is written in Go", {"type": "fact"}, "room-1", "agent-1")
        gateway = FakeGateway([model_output(
            {"fact": "Billing service is written in Go."},
            {"fact": "Billing service is deployed on Fly.io"},
        )])
        extractor = make_extractor(gateway)

        result = extractor.handle(agent_turn(LONG_RESPONSE), SessionState())

        assert [r.text for r in result.records] == ["Billing service is deployed on Fly.io"]
        assert len(memory_store.entries) == 2

    def test_duplicates_within_one_batch_stored_once(self, make_extractor, memory_store):
        """CONTRACT: A batch repeating itself stores the fact once."""
        gateway = FakeGateway([model_output(
            {"fact": "User's timezone is Europe/Berlin"},
            {"fact": "User's timezone is Europe/Berlin"},
        )])

        result = make_extractor(gateway).handle(agent_turn(LONG_RESPONSE), SessionState())

        assert result.stored_count == 1

    def test_failed_lookup_still_stores(self, make_extractor, memory_store, mock_logger):
        """CONTRACT: A failed duplicate lookup degrades to storing without de-duplication."""
        def broken_lookup(*args, **kwargs):
            raise MemoryStoreError("db down")
        memory_store.list_contents = broken_lookup
        gateway = FakeGateway([model_output({"fact": "User's timezone is Europe/Berlin"})])

        result = make_extractor(gateway).handle(agent_turn(LONG_RESPONSE), SessionState())

        assert result.stored_count == 1
        mock_logger.warning.assert_called_once()
