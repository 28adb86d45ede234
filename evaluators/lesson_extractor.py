"""
Lesson extractor - management lessons from task outcomes and user feedback.

Runs when a turn carries a task result, evaluative feedback, or a
completion/failure/timeout notice, and stores each confident lesson as a
`task_lesson` memory.
"""
import logging
from pathlib import Path
from typing import Optional, Union

from config.config import LessonExtractionConfig
from evaluators.models import ConversationTurn, SessionState
from evaluators.persistence import MemoryStore
from evaluators.pipeline import ExtractionEvaluator, ModelGateway
from evaluators.processing.prompt_builder import PromptBuilder
from evaluators.processing.record_filter import RecordFilter
from evaluators.triggers import should_extract_lessons

LESSON_CATEGORIES = (
    "task-estimation",
    "project-selection",
    "error-handling",
    "user-preference",
    "tool-selection",
)


class LessonExtractor(ExtractionEvaluator):
    """
    Extract management lessons from task completions and user feedback.

    Example:
        >>> extractor = LessonExtractor.from_config(config.lessons, prompts_dir, llm, store)
        >>> if extractor.validate(turn, state):
        ...     result = extractor.handle(turn, state)
    """

    name = "LESSON_EXTRACTOR"
    description = "Extract management lessons from task completions and user feedback"

    def __init__(
        self,
        gateway: ModelGateway,
        memory_store: MemoryStore,
        prompt_builder: PromptBuilder,
        min_confidence: float = 0.5,
        temperature: float = 0.3,
        memory_type: str = "task_lesson",
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(
            gateway=gateway,
            memory_store=memory_store,
            record_filter=RecordFilter(min_confidence=min_confidence, require_category=True),
            memory_type=memory_type,
            temperature=temperature,
            logger=logger,
        )
        self.prompt_builder = prompt_builder

    @classmethod
    def from_config(
        cls,
        config: LessonExtractionConfig,
        prompts_dir: Union[str, Path],
        gateway: ModelGateway,
        memory_store: MemoryStore,
        logger: Optional[logging.Logger] = None
    ) -> "LessonExtractor":
        return cls(
            gateway=gateway,
            memory_store=memory_store,
            prompt_builder=PromptBuilder.from_file(prompts_dir, config.prompt_file, config.context_messages),
            min_confidence=config.min_confidence,
            temperature=config.temperature,
            memory_type=config.memory_type,
            logger=logger,
        )

    def should_run(self, turn: ConversationTurn, state: Optional[SessionState]) -> bool:
        return should_extract_lessons(turn.text, state)

    def build_prompt(self, turn: ConversationTurn, state: Optional[SessionState]) -> Optional[str]:
        return self.prompt_builder.build(turn, state)
