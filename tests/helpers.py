"""Shared test helpers for persevere tests."""


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FlakyOperation:
    """Operation that raises ``error_message`` for its first ``failures`` calls.

    ``failures=None`` fails forever.
    """

    def __init__(
        self,
        error_message: str,
        failures: int | None = None,
        result: object = "success",
        error_type: type[Exception] = RuntimeError,
    ) -> None:
        self.error_message = error_message
        self.failures = failures
        self.result = result
        self.error_type = error_type
        self.calls = 0
        self.raised: list[Exception] = []

    async def __call__(self) -> object:
        self.calls += 1
        if self.failures is None or self.calls <= self.failures:
            error = self.error_type(self.error_message)
            self.raised.append(error)
            raise error
        return self.result
