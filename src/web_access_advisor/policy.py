"""Decides whether a replayed step is worth a snapshot."""

from web_access_advisor.models.actions import Action
from web_access_advisor.models.snapshot import ChangeRecord


def should_capture(action: Action, change: ChangeRecord, index: int, all_actions: list[Action]) -> bool:
    """Return True if a snapshot should be taken after ``action``.

    The first action, any navigation and any significant change are always
    captured. An insignificant ``fill`` is captured only when it is the last
    edit of its field: if the next action is another ``fill`` on the same
    selector the intermediate state is skipped.
    """
    if index == 0 or change.type == "navigation" or change.significant:
        return True

    if action.type == "fill":
        next_action = all_actions[index + 1] if index + 1 < len(all_actions) else None
        if next_action and next_action.type == "fill" and next_action.selector == action.selector:
            return False
        return True

    return False
