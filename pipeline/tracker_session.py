"""
TrackerSession — displayed vs committed state across turns.

`displayed` is what the user sees and may edit. `committed` is what the next
prompt is built from. A parsed turn replaces `displayed`; it only becomes
`committed` when the next turn begins, and a swipe (regenerating the same
turn) re-parses against the same committed state instead of committing the
rejected attempt.
"""

import logging
from typing import Any, Dict, Optional, Union

from models.tracker_config import TrackerConfig
from models.tracker_data import TrackerData, create_empty_tracker_data, encode_json, merge_tracker_data
from pipeline.turn_parser import ParseResult, parse_response
from tools.cross_references import remove_item_and_linked_skills, validate_cross_references
from tools.markdown_codec import encode_markdown
from tools.normalizer import normalize_tracker_data
from tools.schema_builder import format_instruction_block

logger = logging.getLogger('TrackerSession')


class TrackerSession:
    """Holds the two state versions for one chat.

    Not thread-safe; one turn is parsed at a time.
    """

    def __init__(self, config: TrackerConfig, committed: Optional[TrackerData] = None):
        if config is None:
            raise ValueError("TrackerSession requires a TrackerConfig")
        self.config = config
        self.committed: TrackerData = (
            committed.model_copy(deep=True) if committed is not None else create_empty_tracker_data(config)
        )
        self.displayed: TrackerData = self.committed.model_copy(deep=True)
        self.last_result: Optional[ParseResult] = None

    # ------------------------------------------------------------------
    # Turn lifecycle
    # ------------------------------------------------------------------

    def begin_turn(self, is_swipe: bool = False):
        """Call before generating a response.

        A new turn commits what is displayed. A swipe keeps the committed
        state so the regenerated response is parsed against the same base.
        """
        if is_swipe:
            logger.debug("Swipe: keeping committed state")
            return
        self.commit()

    def process_response(self, text: str) -> ParseResult:
        """Parse a response; update `displayed` only if a tracker was found."""
        result = parse_response(text, self.config, self.committed)
        self.last_result = result
        if result.updated:
            self.displayed = result.state.model_copy(deep=True)
        else:
            logger.info("Response carried no tracker update; display unchanged")
        return result

    def commit(self):
        self.committed = self.displayed.model_copy(deep=True)

    def reset(self):
        """Back to a fresh state from the configured defaults."""
        self.committed = create_empty_tracker_data(self.config)
        self.displayed = self.committed.model_copy(deep=True)
        self.last_result = None

    # ------------------------------------------------------------------
    # User edits
    # ------------------------------------------------------------------

    def apply_user_edit(self, edit: Union[TrackerData, Dict[str, Any]]) -> TrackerData:
        """Overlay a user edit onto the displayed state.

        The edit gets the same shape coercion as model output, but none of
        the AI-only rules (frozen attributes, relationship filtering). It
        diverges `displayed` from `committed` until the next commit.
        """
        if isinstance(edit, TrackerData):
            edit = edit.to_dict()
        partial = normalize_tracker_data(edit)
        merged = merge_tracker_data(self.displayed, partial)
        validate_cross_references(merged)
        self.displayed = merged
        return self.displayed

    def remove_item(self, item_name: str, location: Optional[str] = None):
        """Remove an item from the displayed inventory.

        Skills it granted go with it when deleteSkillWithItem is set.
        """
        removed = remove_item_and_linked_skills(
            self.displayed, item_name, location, remove_linked=self.config.delete_skill_with_item,
        )
        validate_cross_references(self.displayed)
        return removed

    # ------------------------------------------------------------------
    # Prompt text
    # ------------------------------------------------------------------

    def previous_state_text(self, use_markdown: Optional[bool] = None) -> str:
        """The committed state as shown to the model as "previous state"."""
        if use_markdown is None:
            use_markdown = self.config.use_markdown_format
        if use_markdown:
            return encode_markdown(self.committed)
        return encode_json(self.committed)

    def format_instructions(self) -> str:
        return format_instruction_block(self.config)
