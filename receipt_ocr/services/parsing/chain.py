"""
Ordered-stage runner used by the vendor and date heuristics.

Each stage is a callable taking the same arguments and returning a result or
something falsy. Stages run in order and the first non-empty result wins.
"""

from typing import Any, Callable, Iterable, Optional
from loguru import logger


def first_result(stages: Iterable[Callable[..., Any]], *args, **kwargs) -> Optional[Any]:
    for stage in stages:
        result = stage(*args, **kwargs)
        if result:
            logger.debug("Heuristic stage matched", stage=getattr(stage, "__name__", repr(stage)))
            return result
    return None
