import asyncio
from typing import Awaitable, Callable, Optional, TypeVar, Generic

T = TypeVar('T')


class PollingTimeout(Exception):
    def __init__(self, attempts: int, last_result=None):
        self.attempts = attempts
        self.last_result = last_result
        super().__init__(f"Condition not met after {attempts} attempts")


class RetryPolicy(Generic[T]):
    def __init__(self, max_retries: int = 3, delay: float = 1.0, backoff_factor: float = 1.0):
        self.max_retries = max_retries
        self.delay = delay
        self.backoff_factor = backoff_factor

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def poll_until(
        self,
        func: Callable[..., Awaitable[T]],
        predicate: Callable[[T], bool],
        *args,
        on_attempt: Optional[Callable[[int, T], Awaitable[None]]] = None,
        **kwargs,
    ) -> T:
        """Call ``func`` until ``predicate`` accepts its result.

        Raises PollingTimeout carrying the last result when every attempt is
        rejected. Exceptions from ``func`` propagate immediately.
        """
        last_result = None
        current_delay = self.delay
        for attempt in range(1, self.max_attempts + 1):
            last_result = await func(*args, **kwargs)
            if on_attempt is not None:
                await on_attempt(attempt, last_result)
            if predicate(last_result):
                return last_result
            if attempt < self.max_attempts:
                await asyncio.sleep(current_delay)
                current_delay *= self.backoff_factor
        raise PollingTimeout(self.max_attempts, last_result)
