from logging import Logger
from typing import Iterator, Optional


def retry_time(exponential: bool, base: float, ntries: int, logger: Optional[Logger]) -> float:
    """Return the number of seconds to wait before retry number `ntries`.

    With exponential backoff the wait is `base ** ntries`, which only grows
    when base > 1; otherwise the wait is always `abs(base)`.
    """
    if exponential:
        if base > 1:
            return base**ntries
        if logger:
            logger.warning("Base %f incompatible with exponential backoff", base)

    return abs(base)


def retry_delays(max_retries: int, base: float, exponential: bool, logger: Optional[Logger] = None) -> Iterator[float]:
    """Yield the wait before each of at most `max_retries` retries.

    A negative `max_retries` is treated as zero, so the generator is empty and
    the caller gives up after the first failure.
    """
    for ntries in range(max(max_retries, 0)):
        yield retry_time(exponential, base, ntries, logger)
