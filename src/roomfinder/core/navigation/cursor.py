"""Keyboard cursor over a grid of `columns` cells per row, with wraparound."""

from collections.abc import Callable

from roomfinder.models.hierarchy import KeyEvent

UNSELECTED = -1

ARROW_KEYS = frozenset({"ArrowDown", "ArrowUp", "ArrowRight", "ArrowLeft"})


def move_down(index: int, n: int, columns: int) -> int:
    nxt = index + columns
    return nxt if nxt < n else index % columns


def move_up(index: int, n: int, columns: int) -> int:
    nxt = index - columns
    if nxt >= 0:
        return nxt
    # Last populated row, same column. That cell may not exist in a short last row.
    return min((n - 1) // columns * columns + index % columns, n - 1)


def move_right(index: int, n: int, columns: int) -> int:
    row, col = divmod(index, columns)
    nxt = row * columns + col + 1
    if col + 1 < columns and nxt < n:
        return nxt
    return row * columns


def move_left(index: int, n: int, columns: int) -> int:
    row, col = divmod(index, columns)
    if col - 1 >= 0:
        return row * columns + col - 1
    return min(row * columns + columns - 1, n - 1)


_MOVES: dict[str, Callable[[int, int, int], int]] = {
    "ArrowDown": move_down,
    "ArrowUp": move_up,
    "ArrowRight": move_right,
    "ArrowLeft": move_left,
}


class NavigationCursor:
    """Selected index over the active list.

    The list length and column count are passed on every move, since both
    belong to whatever list is active at the time of the key press.
    """

    def __init__(self) -> None:
        self.index = UNSELECTED

    @property
    def selected(self) -> bool:
        return self.index != UNSELECTED

    def reset(self) -> None:
        self.index = UNSELECTED

    def move(self, event: KeyEvent, n: int, columns: int) -> bool:
        """Apply an arrow key. Returns True if the key was an arrow key.

        From the unselected state any arrow lands on the first item.
        Left/right only act in grid mode (columns > 1).
        """
        if event.key not in ARROW_KEYS:
            return False
        columns = max(1, columns)
        if n <= 0:
            return True
        if event.key in ("ArrowRight", "ArrowLeft") and columns == 1:
            return True
        if not self.selected or self.index >= n:
            self.index = 0
            return True
        self.index = _MOVES[event.key](self.index, n, columns)
        return True
