# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from asyncio import gather
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
from logging import Logger
from typing import Any, TypeVar

# project
from provisioning.common import log_errors

T = TypeVar("T")


async def collect(it: AsyncIterable[T]) -> list[T]:
    """Helper for collecting an async iterable, useful for simplifying error handling"""
    return [item async for item in it]


async def run_all(
    steps: Iterable[Callable[[], Awaitable[Any]]], log: Logger, message: str, *, concurrent: bool = False
) -> None:
    """Run every step, one after another or all at once. Concurrent steps are all
    awaited before the first error is raised"""
    if not concurrent:
        for step in steps:
            await step()
        return
    results = await gather(*(step() for step in steps), return_exceptions=True)
    log_errors(log, message, *results, reraise=True)
