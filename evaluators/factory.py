"""
Factory for creating and wiring turn evaluators.

Explicit dependency management: the factory owns the gateway, the memory
store and the evaluator instances, and releases database pools on cleanup().
"""
import logging
from typing import Dict, List, Optional

from clients.llm_provider import LLMProvider
from config.config import AppConfig
from evaluators.fact_extractor import FactExtractor
from evaluators.lesson_extractor import LessonExtractor
from evaluators.models import ConversationTurn, PipelineResult, SessionState
from evaluators.persistence import InMemoryMemoryStore, MemoryStore, PostgresMemoryStore
from evaluators.personality_extractor import PersonalityExtractor
from evaluators.pipeline import ExtractionEvaluator, ModelGateway
from utils.database_session_manager import DatabaseSessionManager

logger = logging.getLogger(__name__)


class EvaluatorFactory:
    """
    Creates and manages evaluator instances with explicit dependencies.

    Usage:
        factory = EvaluatorFactory(config)
        results = factory.evaluate_turn(turn, state)
        factory.cleanup()
    """

    def __init__(
        self,
        config: AppConfig,
        llm_provider: Optional[ModelGateway] = None,
        memory_store: Optional[MemoryStore] = None
    ):
        """
        Initialize factory.

        Args:
            config: Application configuration
            llm_provider: Model gateway (defaults to an LLMProvider over config)
            memory_store: Memory store (defaults to the configured backend)

        Raises:
            ValueError: If the postgres backend is selected without a database URL
            FileNotFoundError: If a prompt template is missing
        """
        self.config = config
        self._session_manager: Optional[DatabaseSessionManager] = None

        logger.info("Initializing EvaluatorFactory")
        self.llm_provider = llm_provider if llm_provider is not None else LLMProvider(config=config)
        self.memory_store = memory_store if memory_store is not None else self._build_memory_store()
        self.evaluators: List[ExtractionEvaluator] = self._build_evaluators()
        logger.info(
            f"EvaluatorFactory ready with {len(self.evaluators)} evaluator(s): "
            f"{', '.join(e.name for e in self.evaluators) or 'none'}"
        )

    def _build_memory_store(self) -> MemoryStore:
        storage = self.config.storage
        if storage.backend == "memory":
            logger.debug("Using in-memory memory store")
            return InMemoryMemoryStore()

        database_url = self.config.get_secret(storage.database_url_env)
        if not database_url:
            raise ValueError(
                f"Storage backend 'postgres' requires {storage.database_url_env} to be set"
            )
        self._session_manager = DatabaseSessionManager(
            database_url,
            max_connections=storage.pool_max_connections,
        )
        store = PostgresMemoryStore(self._session_manager, table=storage.table)
        store.ensure_schema()
        return store

    def _build_evaluators(self) -> List[ExtractionEvaluator]:
        prompts_dir = self.config.system.prompts_dir
        lookup_limit = self.config.storage.dedup_lookup_limit
        evaluators: List[ExtractionEvaluator] = []

        if self.config.lessons.enabled:
            evaluators.append(LessonExtractor.from_config(
                self.config.lessons, prompts_dir, self.llm_provider, self.memory_store
            ))
        if self.config.facts.enabled:
            evaluators.append(FactExtractor.from_config(
                self.config.facts, prompts_dir, self.llm_provider, self.memory_store,
                dedup_lookup_limit=lookup_limit,
            ))
        if self.config.personality.enabled:
            evaluators.append(PersonalityExtractor.from_config(
                self.config.personality, prompts_dir, self.llm_provider, self.memory_store,
                dedup_lookup_limit=lookup_limit,
            ))
        return evaluators

    def evaluate_turn(
        self,
        turn: ConversationTurn,
        state: Optional[SessionState] = None
    ) -> Dict[str, PipelineResult]:
        """
        Run every evaluator the way a host would: validate(), then handle().

        Returns:
            Results keyed by evaluator name, only for evaluators that ran
        """
        results: Dict[str, PipelineResult] = {}
        for evaluator in self.evaluators:
            if evaluator.validate(turn, state):
                results[evaluator.name] = evaluator.handle(turn, state)
        return results

    def cleanup(self):
        """Release the database pool, if one was created."""
        if self._session_manager is not None:
            logger.info("Cleaning up EvaluatorFactory")
            self._session_manager.cleanup()
            self._session_manager = None

    def __repr__(self) -> str:
        return f"EvaluatorFactory(evaluators={[e.name for e in self.evaluators]})"
