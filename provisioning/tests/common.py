# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import AsyncIterable
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, TypeVar
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock, Mock, call, patch

# 3p
from azure.core.exceptions import HttpResponseError

T = TypeVar("T")

SUBSCRIPTION_ID = "0863329b-6e5c-4b49-bb0e-c87fdab76bb2"
RESOURCE_GROUP_NAME = "rg1NEMV_test"
EAST_US = "eastus"


class AsyncTestCase(IsolatedAsyncioTestCase):
    def patch_path(self, path: str, **kwargs: Any) -> MagicMock | AsyncMock:
        p = patch(path, **kwargs)
        self.addCleanup(p.stop)
        return p.start()

    def assertCalledTimesWith(self, mock: AsyncMock, times: int, /, *args: Any, **kwargs: Any):
        self.assertEqual(mock.await_count, times)
        self.assertEqual([call(*args, **kwargs)] * times, mock.await_args_list)


async def async_generator(*items: T) -> AsyncIterable[T]:
    for x in items:
        if isinstance(x, Exception):
            raise x
        yield x


class UnexpectedException(Exception):
    """Testing for exceptions that we havent accounted for"""

    pass


class FakeHttpError(HttpResponseError):
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        self.message = str({"code": f"something related to {self.status_code}"})

    reason = None
    error = None


def mock(**kwargs: Any) -> Mock:
    m = Mock()
    for k, v in kwargs.items():
        setattr(m, k, v)
    return m


def AsyncMockClient(**kwargs: Any) -> AsyncMock:
    """An AsyncMock with the context manager methods set up to use as a client"""
    m = AsyncMock(**kwargs)
    m.__aenter__.return_value = m
    m.__aexit__.return_value = None
    return m


def poller(result: Any = None) -> Mock:
    """A finished long running operation poller, `result()` must be awaited like the async SDK's"""
    return mock(result=AsyncMock(return_value=result))


def plan_id(resource_group: str, name: str = "plan1-test") -> str:
    return (
        f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.Web/serverfarms/{name}"
    )


@dataclass(frozen=True)
class AzureModelMatcher:
    expected: dict[str, Any]

    def __eq__(self, other: Any) -> bool:
        with suppress(Exception):
            return other.as_dict() == self.expected
        return False  # pragma: no cover
