import asyncio
import functools
from typing import Any, Awaitable, Callable, TypeVar

from ..errors import OperationTimeoutError

T = TypeVar('T')

async def with_deadline(awaitable: Awaitable[T], timeout_seconds: float, operation: str) -> T:
    """Await a connector operation, failing with OperationTimeoutError past the deadline"""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise OperationTimeoutError(f"{operation} timed out after {timeout_seconds} seconds")

async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking call (paramiko, for instance) on the default executor"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
