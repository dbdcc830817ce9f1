"""Cooperative cancellation tokens."""


class CancellationToken:
    """Flag captured by one invocation and checked before every state write.

    Cancelling never aborts the underlying call; it only makes its result
    irrelevant.
    """

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled!r})"
