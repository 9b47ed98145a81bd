# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from asyncio import sleep
from logging import getLogger

# 3p
from aiohttp import ClientError, ClientSession, ClientTimeout
from tenacity import retry, retry_if_exception_type, stop_after_delay, wait_fixed

REQUEST_TIMEOUT = ClientTimeout(total=60)
POLL_INTERVAL_SECONDS = 5

RETRYABLE_ERRORS = (ClientError, TimeoutError)

log = getLogger(__name__)


async def request(session: ClientSession, url: str, body: str | None = None) -> str:
    """POST `body` to `url`, or GET `url` when there is no body, and return the response text"""
    method = "GET" if body is None else "POST"
    async with session.request(method, url, data=body, timeout=REQUEST_TIMEOUT) as resp:
        resp.raise_for_status()
        return await resp.text()


async def warm_up(session: ClientSession, url: str, delay: float, body: str | None = None) -> str | Exception:
    """Wait a fixed `delay` then hit the site once. Any failure is logged and returned, never raised"""
    await sleep(delay)
    try:
        return await request(session, url, body)
    except RETRYABLE_ERRORS as e:
        log.warning("Warm up request to %s failed: %s", url, e)
        return e
    except Exception as e:
        log.exception("Unexpected error warming up %s", url)
        return e


async def poll_until_ready(
    session: ClientSession,
    url: str,
    timeout: float,
    body: str | None = None,
    interval: float = POLL_INTERVAL_SECONDS,
) -> str | Exception:
    """Keep hitting the site until it answers successfully or `timeout` seconds pass.
    Only connection and HTTP errors are retried, every failure is returned, never raised"""
    try:
        return await retry(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_delay(timeout),
            wait=wait_fixed(interval),
            reraise=True,
        )(request)(session, url, body)
    except RETRYABLE_ERRORS as e:
        log.warning("%s was not ready after %s seconds: %s", url, timeout, e)
        return e
    except Exception as e:
        log.exception("Unexpected error polling %s", url)
        return e
