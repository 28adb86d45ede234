"""
Prompt builders - turn session context into extraction prompts.

Templates are plain text files under config/prompts, loaded once when the
builder is constructed. Building a prompt is a pure function of the turn and
the session snapshot.
"""
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from evaluators.models import ConversationTurn, RecentMessage, SessionState

logger = logging.getLogger(__name__)

USER_ROLES = ("user", "human")


def load_prompt_template(prompts_dir: Union[str, Path], filename: str) -> str:
    """
    Load a prompt template from disk.

    Raises:
        FileNotFoundError: If the template does not exist (fail-fast)
    """
    path = Path(prompts_dir) / filename
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        template = f.read().strip()

    logger.debug(f"Loaded prompt template {filename}")
    return template


def render_recent_context(messages: Sequence[RecentMessage], limit: int) -> str:
    """
    Render the last `limit` messages as `role: text` lines, oldest first.
    """
    if limit <= 0:
        return ""
    return "\n".join(f"{m.role}: {m.text}" for m in messages[-limit:])


class PromptBuilder:
    """
    Conversation-window prompt: recent context plus the current turn.

    Template placeholders: {recent_context}, {current_message}.
    """

    def __init__(self, template: str, context_messages: int):
        self.template = template
        self.context_messages = context_messages

    @classmethod
    def from_file(
        cls,
        prompts_dir: Union[str, Path],
        filename: str,
        context_messages: int
    ) -> "PromptBuilder":
        return cls(load_prompt_template(prompts_dir, filename), context_messages)

    def build(self, turn: ConversationTurn, state: Optional[SessionState]) -> Optional[str]:
        """
        Build the prompt for this turn.

        Returns:
            Prompt text, or None when there is nothing worth asking about
        """
        messages = state.recent_messages if state is not None else ()
        return self.template.format(
            recent_context=render_recent_context(messages, self.context_messages),
            current_message=turn.content,
        )


class UserMessagePromptBuilder(PromptBuilder):
    """
    Numbered list of the user's own recent messages.

    Used for pattern detection across several messages, so it declines to
    build a prompt until enough user messages are available.
    Template placeholder: {user_messages}.
    """

    def __init__(
        self,
        template: str,
        window: int,
        prompt_messages: int,
        min_messages: int,
        min_message_length: int = 6
    ):
        super().__init__(template, context_messages=window)
        self.prompt_messages = prompt_messages
        self.min_messages = min_messages
        self.min_message_length = min_message_length

    @classmethod
    def from_file(
        cls,
        prompts_dir: Union[str, Path],
        filename: str,
        window: int,
        prompt_messages: int,
        min_messages: int
    ) -> "UserMessagePromptBuilder":
        return cls(
            load_prompt_template(prompts_dir, filename),
            window=window,
            prompt_messages=prompt_messages,
            min_messages=min_messages,
        )

    def collect_user_messages(self, turn: ConversationTurn, state: Optional[SessionState]) -> list:
        messages = state.recent_messages if state is not None else ()
        # Window first, then drop short texts: a burst of acknowledgements
        # pushes older material out of the window.
        window = [m.text for m in messages if m.role.lower() in USER_ROLES][-self.context_messages:]
        user_texts = [text for text in window if len(text) >= self.min_message_length]
        user_texts.append(turn.content)
        return user_texts

    def build(self, turn: ConversationTurn, state: Optional[SessionState]) -> Optional[str]:
        user_texts = self.collect_user_messages(turn, state)
        if len(user_texts) < self.min_messages:
            return None

        numbered = "\n".join(
            f'{i}. "{text}"' for i, text in enumerate(user_texts[-self.prompt_messages:], start=1)
        )
        return self.template.format(user_messages=numbered)
