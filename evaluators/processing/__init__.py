"""
Extraction processing stages.

Each stage is a pure, separately testable step between the trigger check and
persistence:
- prompt_builder: Render session context into extraction prompts
- output_parser: Parse raw model output into loosely-typed records
- record_filter: Admission rules and fuzzy duplicate detection
"""

from evaluators.processing.prompt_builder import PromptBuilder, UserMessagePromptBuilder
from evaluators.processing.output_parser import OutputParser
from evaluators.processing.record_filter import DuplicateDetector, RecordFilter

__all__ = [
    "PromptBuilder",
    "UserMessagePromptBuilder",
    "OutputParser",
    "RecordFilter",
    "DuplicateDetector",
]
