import asyncio
from typing import Any, Awaitable, Callable, List, Sequence


async def gather_all_or_nothing(
    tasks: Sequence[Awaitable[Any]],
    wrap_error: Callable[[int, Exception], Exception],
) -> List[Any]:
    """
    Run a stage's tasks concurrently and wait for every one of them.

    Siblings are not cancelled when one fails. Results come back in task order.
    If any task failed, the first failure in task order is raised, converted by
    `wrap_error(position, exc)`.
    """
    results = await asyncio.gather(*tasks, return_exceptions=True)

    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            raise result
    for position, result in enumerate(results):
        if isinstance(result, Exception):
            error = wrap_error(position, result)
            if error is result:
                raise error
            raise error from result

    return list(results)
