"""Per-user record of recently picked titles."""

from __future__ import annotations

from collections import OrderedDict

from ..models import Title


class PickHistory:
    """Newest-first pick lists for a bounded number of users.

    Users are kept in least-recently-used order; once more than
    ``max_users`` are tracked the stalest ones are forgotten.
    """

    def __init__(self, *, max_recent_picks: int = 10, max_users: int = 100) -> None:
        self._max_recent_picks = max_recent_picks
        self._max_users = max_users
        self._picks: OrderedDict[str, list[Title]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._picks)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._picks

    @property
    def max_recent_picks(self) -> int:
        return self._max_recent_picks

    def recent(self, user_id: str) -> tuple[Title, ...]:
        picks = self._picks.get(user_id)
        if picks is None:
            return ()
        self._picks.move_to_end(user_id)
        return tuple(picks)

    def recent_ids(self, user_id: str) -> set[str]:
        return {title.id for title in self.recent(user_id)}

    def record(self, user_id: str, title: Title) -> None:
        picks = self._picks.setdefault(user_id, [])
        picks.insert(0, title)
        del picks[self._max_recent_picks :]
        self._picks.move_to_end(user_id)

        while len(self._picks) > self._max_users:
            self._picks.popitem(last=False)

    def forget(self, user_id: str) -> None:
        self._picks.pop(user_id, None)
