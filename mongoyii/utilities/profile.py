import time
from contextlib import contextmanager
from typing import Iterator

from .logger import get_logger


@contextmanager
def profile(token: str, category: str, *, enabled: bool = True) -> Iterator[None]:
	""" Wraps a block of driver work in begin/end profiling messages.
	The token identifies the exact operation (usually including the serialized query), the category groups similar operations. """
	if not enabled:
		yield
		return

	logger = get_logger()
	logger.debug(f"[{category}] begin: {token}")
	start_time = time.time()
	try:
		yield
	finally:
		logger.debug(f"[{category}] end: {token} in {(time.time() - start_time):.3f} seconds")
