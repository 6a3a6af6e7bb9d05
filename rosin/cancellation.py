"""Run-scoped cooperative cancellation."""


class RunCancelledError(Exception):
    """Raised at a cancellation checkpoint once the run has been cancelled."""


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise RunCancelledError()
