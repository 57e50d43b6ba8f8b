"""
Undo Service
Holds the single most recent reversible action for a short window
"""

import logging
import uuid
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from config import tracker_config


logger = logging.getLogger(__name__)


class UndoUnavailableError(LookupError):
    """No undo is on offer (expired, superseded or never registered)"""


@dataclass
class UndoAction:
    """An applied mutation and the closure that reverses it"""
    action_type: str
    created_at: datetime
    expires_at: datetime
    undo: Callable[[], Any]
    data: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class UndoService:
    """
    Offers exactly one undo at a time.

    Registering a new action supersedes the previous one. An action can be
    undone once, and only before its window closes.
    """

    def __init__(
        self,
        window_seconds: int = tracker_config.UNDO_WINDOW_SECONDS,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock
        self._pending: Optional[UndoAction] = None

    def register(
        self,
        action_type: str,
        undo: Callable[[], Any],
        data: Optional[Dict[str, Any]] = None
    ) -> UndoAction:
        """Offer a new undo, replacing any earlier one"""
        now = self.clock()
        action = UndoAction(
            action_type=action_type,
            created_at=now,
            expires_at=now + self.window,
            undo=undo,
            data=data or {}
        )
        if self._pending is not None:
            logger.debug(f"Undo {self._pending.id} superseded by {action.id}")
        self._pending = action
        return action

    def current(self) -> Optional[UndoAction]:
        """The undo on offer right now, if any"""
        if self._pending is not None and self._pending.is_expired(self.clock()):
            self._pending = None
        return self._pending

    def undo(self, action_id: Optional[str] = None) -> Any:
        """
        Run the pending undo

        Args:
            action_id: When given, must match the pending action

        Raises:
            UndoUnavailableError: nothing to undo, expired or superseded
        """
        action = self.current()
        if action is None:
            raise UndoUnavailableError("Nothing to undo")
        if action_id is not None and action.id != action_id:
            raise UndoUnavailableError("That action can no longer be undone")

        self._pending = None
        logger.info(f"Undoing {action.action_type} ({action.id})")
        return action.undo()

    def clear(self) -> None:
        self._pending = None
