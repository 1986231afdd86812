"""Conversation service - one pending multi-step flow per user.

A flow is entered from an inline button (for example "Edit Text" or
"Add Button"), captures the user's next private message(s) and is cleared on
completion, on /cancel, or when a step aborts. Entering a flow always replaces
whatever flow the user had before, so a user is never in two wizards at once.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)


class InputShape(str, Enum):
    """What kind of message a flow step consumes."""

    TEXT = "text"
    MEDIA = "media"
    TARGET = "target"  # text id/@username, forwarded message, or reply


class FlowKind(str, Enum):
    EDIT_WELCOME_TEXT = "edit_welcome_text"
    EDIT_GOODBYE_TEXT = "edit_goodbye_text"
    UPLOAD_WELCOME_MEDIA = "upload_welcome_media"
    UPLOAD_GOODBYE_MEDIA = "upload_goodbye_media"
    ADD_WELCOME_BUTTON_TEXT = "add_welcome_button_text"
    ADD_GOODBYE_BUTTON_TEXT = "add_goodbye_button_text"
    ADD_WELCOME_BUTTON_URL = "add_welcome_button_url"
    ADD_GOODBYE_BUTTON_URL = "add_goodbye_button_url"
    AWAIT_BLACKLIST_USER = "await_blacklist_user"
    AWAIT_WARN_USER = "await_warn_user"
    AWAIT_KICK_USER = "await_kick_user"
    AWAIT_BLACKLIST_REASON = "await_blacklist_reason"
    AWAIT_WARN_REASON = "await_warn_reason"
    AWAIT_KICK_REASON = "await_kick_reason"

    @property
    def shape(self) -> InputShape:
        return _SHAPES[self]

    @property
    def next_step(self) -> Optional["FlowKind"]:
        """Kind a valid input moves to, or None when the step is terminal."""
        return _TRANSITIONS.get(self)

    @property
    def is_welcome(self) -> bool:
        return "welcome" in self.value


_SHAPES = {
    FlowKind.EDIT_WELCOME_TEXT: InputShape.TEXT,
    FlowKind.EDIT_GOODBYE_TEXT: InputShape.TEXT,
    FlowKind.UPLOAD_WELCOME_MEDIA: InputShape.MEDIA,
    FlowKind.UPLOAD_GOODBYE_MEDIA: InputShape.MEDIA,
    FlowKind.ADD_WELCOME_BUTTON_TEXT: InputShape.TEXT,
    FlowKind.ADD_GOODBYE_BUTTON_TEXT: InputShape.TEXT,
    FlowKind.ADD_WELCOME_BUTTON_URL: InputShape.TEXT,
    FlowKind.ADD_GOODBYE_BUTTON_URL: InputShape.TEXT,
    FlowKind.AWAIT_BLACKLIST_USER: InputShape.TARGET,
    FlowKind.AWAIT_WARN_USER: InputShape.TARGET,
    FlowKind.AWAIT_KICK_USER: InputShape.TARGET,
    FlowKind.AWAIT_BLACKLIST_REASON: InputShape.TEXT,
    FlowKind.AWAIT_WARN_REASON: InputShape.TEXT,
    FlowKind.AWAIT_KICK_REASON: InputShape.TEXT,
}

_TRANSITIONS = {
    FlowKind.ADD_WELCOME_BUTTON_TEXT: FlowKind.ADD_WELCOME_BUTTON_URL,
    FlowKind.ADD_GOODBYE_BUTTON_TEXT: FlowKind.ADD_GOODBYE_BUTTON_URL,
    FlowKind.AWAIT_BLACKLIST_USER: FlowKind.AWAIT_BLACKLIST_REASON,
    FlowKind.AWAIT_WARN_USER: FlowKind.AWAIT_WARN_REASON,
    FlowKind.AWAIT_KICK_USER: FlowKind.AWAIT_KICK_REASON,
}

# Kinds a user may enter directly from a button; the rest are only reachable via advance().
ENTRY_KINDS = frozenset(FlowKind) - frozenset(_TRANSITIONS.values())


@dataclass(frozen=True)
class PendingFlow:
    """The single active flow of a user."""

    kind: FlowKind
    group_id: int
    target_id: Optional[int] = None  # moderation target, set after the *_USER step
    label: Optional[str] = None  # button label, set after the *_BUTTON_TEXT step


class FlowError(Exception):
    """Raised on an illegal transition (wrong step or wrong entry point)."""


class ConversationService:
    """
    In-memory per-user flow slots.

    Reads and writes for one user are serialized through that user's lock;
    handlers hold it with `async with conversations.locked(user_id)` for the
    whole read-handle-transition sequence so rapid double sends cannot tear
    a step. A lock lives only while its user has a pending flow or a handler
    holding or waiting on it.
    """

    def __init__(self):
        self._flows: dict[int, PendingFlow] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._holders: dict[int, int] = {}

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def _prune_lock(self, user_id: int) -> None:
        if self._holders.get(user_id, 0) == 0 and user_id not in self._flows:
            self._holders.pop(user_id, None)
            self._locks.pop(user_id, None)

    @asynccontextmanager
    async def locked(self, user_id: int) -> AsyncIterator[None]:
        lock = self._lock_for(user_id)
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            self._prune_lock(user_id)

    def get(self, user_id: int) -> Optional[PendingFlow]:
        return self._flows.get(user_id)

    def has_pending(self, user_id: int) -> bool:
        return user_id in self._flows

    def start(self, user_id: int, kind: FlowKind, group_id: int) -> Optional[PendingFlow]:
        """
        Enter a new flow, superseding any other flow of this user.

        Returns:
            The flow that was replaced, if any
        """
        if kind not in ENTRY_KINDS:
            raise FlowError(f"{kind.value} cannot be entered directly")
        previous = self._flows.get(user_id)
        self._flows[user_id] = PendingFlow(kind=kind, group_id=int(group_id))
        if previous is not None and previous.kind != kind:
            logger.info(f"User {user_id}: flow {previous.kind.value} superseded by {kind.value}")
        return previous

    def advance(
        self,
        user_id: int,
        expected: FlowKind,
        *,
        target_id: Optional[int] = None,
        label: Optional[str] = None,
    ) -> PendingFlow:
        """Move a two-step flow from its first step to the second, carrying the captured value."""
        current = self._flows.get(user_id)
        if current is None or current.kind != expected:
            raise FlowError(f"User {user_id} is not in {expected.value}")
        nxt = expected.next_step
        if nxt is None:
            raise FlowError(f"{expected.value} is a terminal step")
        if expected.shape == InputShape.TARGET and target_id is None:
            raise FlowError("target_id is required to leave a target step")
        if nxt in (FlowKind.ADD_WELCOME_BUTTON_URL, FlowKind.ADD_GOODBYE_BUTTON_URL) and not label:
            raise FlowError("label is required to leave a button-text step")
        updated = replace(
            current,
            kind=nxt,
            target_id=int(target_id) if target_id is not None else current.target_id,
            label=label if label is not None else current.label,
        )
        self._flows[user_id] = updated
        return updated

    def clear(self, user_id: int) -> Optional[PendingFlow]:
        """Drop the user's flow (completion or abort). Returns what was pending."""
        flow = self._flows.pop(user_id, None)
        self._prune_lock(user_id)
        return flow

    def cancel(self, user_id: int) -> bool:
        """Clear on /cancel. True only if something was actually pending."""
        flow = self.clear(user_id)
        if flow is not None:
            logger.info(f"User {user_id} cancelled {flow.kind.value}")
        return flow is not None

    def pending_count(self) -> int:
        return len(self._flows)
