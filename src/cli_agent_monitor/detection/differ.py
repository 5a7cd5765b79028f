"""Incremental output extraction for a scrolling terminal buffer."""

from typing import Optional


def diff_output(previous: str, current: str) -> Optional[str]:
    """Return the text appended to the buffer since ``previous`` was captured.

    The last line of the previous capture is located in the current one and
    everything after it is new. When that anchor line has scrolled out of
    the capture window, the lines of ``current`` that never appeared in
    ``previous`` are returned instead, in order.

    Returns:
        The new text, or None when nothing new is visible
    """
    if previous == current:
        return None

    if not previous:
        return current or None

    previous_lines = previous.split("\n")
    current_lines = current.split("\n")

    anchor = previous_lines[-1]
    anchor_index = -1
    for index in range(len(current_lines) - 1, -1, -1):
        if current_lines[index] == anchor:
            anchor_index = index
            break

    if 0 <= anchor_index < len(current_lines) - 1:
        return "\n".join(current_lines[anchor_index + 1 :]) or None

    # Anchor scrolled away (or was redrawn in place)
    seen = set(previous_lines)
    return "\n".join(line for line in current_lines if line not in seen) or None
