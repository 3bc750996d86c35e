# =============================================================================
# core/services/room_feed.py - Per-Room Live Message List
# =============================================================================
# The state behind one open room: the ordered message list a viewer sees.
#
# A message can reach the feed twice: once as the sender's optimistic local
# append and again as the realtime echo of the insert. The feed keys
# messages by id so the second delivery is dropped.
# =============================================================================

from __future__ import annotations

from typing import Any, Iterable


class RoomFeed:
    """
    Ordered, duplicate-free message list for one viewer of one room.

    Example:
        feed = RoomFeed(room_id="r-1", viewer_id="u-1")
        feed.load(history)
        feed.append(message)   # True
        feed.append(message)   # False, already present
    """

    def __init__(self, room_id: str, viewer_id: str):
        self.room_id = room_id
        self.viewer_id = viewer_id
        self._messages: list[dict[str, Any]] = []
        self._index: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._index

    @property
    def messages(self) -> list[dict[str, Any]]:
        return list(self._messages)

    def load(self, history: Iterable[dict[str, Any]]) -> None:
        """Replace the feed with a fetched history (already oldest first)."""
        self._messages = []
        self._index = {}
        for message in history:
            self.append(message)

    def append(self, message: dict[str, Any]) -> bool:
        """
        Append a message unless its id is already in the feed.

        Messages are kept in arrival order.

        Returns:
            True if the message was added
        """
        message_id = message.get("id")
        if message_id is None or message_id in self._index:
            return False
        self._index[message_id] = len(self._messages)
        self._messages.append(dict(message))
        return True

    def discard(self, message_id: str) -> bool:
        """Drop a message, e.g. an optimistic append whose send failed."""
        if message_id not in self._index:
            return False
        self._messages = [m for m in self._messages if m.get("id") != message_id]
        self._index = {m["id"]: i for i, m in enumerate(self._messages)}
        return True

    def needs_receipt(self, message: dict[str, Any]) -> bool:
        """A message written by someone else gets a read receipt when viewed."""
        return message.get("sender_id") != self.viewer_id

    def mark_read(self, message_ids: Iterable[str] | None = None) -> int:
        """
        Flag messages as read locally.

        Args:
            message_ids: Ids to flag; None flags every message not sent by
                the viewer

        Returns:
            Number of messages whose flag changed
        """
        changed = 0
        if message_ids is None:
            targets = [m for m in self._messages if m.get("sender_id") != self.viewer_id]
        else:
            targets = [self._messages[self._index[i]] for i in message_ids if i in self._index]

        for message in targets:
            if not message.get("is_read"):
                message["is_read"] = True
                changed += 1
        return changed
