# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from typing import Any
from unittest.mock import ANY, AsyncMock, MagicMock, Mock

# 3p
from aiohttp import ClientConnectionError, ClientResponseError

# project
from provisioning.tests.common import AsyncTestCase
from provisioning.warmup import REQUEST_TIMEOUT, poll_until_ready, request, warm_up

SQUARE_URL = "http://webapp1-test.azurewebsites.net/api/square"


class WarmUpTestCase(AsyncTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.events: list[Any] = []
        self.sleep = self.patch_path("provisioning.warmup.sleep")
        self.sleep.side_effect = lambda delay: self.events.append(("sleep", delay))
        self.response = MagicMock()
        self.response.raise_for_status = Mock()
        self.response.text = AsyncMock(return_value="390625")
        self.request_context = MagicMock()
        self.request_context.__aenter__.return_value = self.response
        self.request_context.__aexit__.return_value = False
        self.session = MagicMock()

        def _request(method: str, url: str, **kwargs: Any) -> MagicMock:
            self.events.append(("request", method, url, kwargs.get("data")))
            return self.request_context

        self.session.request.side_effect = _request


class TestRequest(WarmUpTestCase):
    async def test_post_with_body(self):
        self.assertEqual(await request(self.session, SQUARE_URL, "625"), "390625")
        self.session.request.assert_called_once_with("POST", SQUARE_URL, data="625", timeout=REQUEST_TIMEOUT)

    async def test_get_without_body(self):
        await request(self.session, "http://webapp4-test.azurewebsites.net")
        self.session.request.assert_called_once_with(
            "GET", "http://webapp4-test.azurewebsites.net", data=None, timeout=REQUEST_TIMEOUT
        )


class TestWarmUp(WarmUpTestCase):
    async def test_waits_before_request(self):
        result = await warm_up(self.session, SQUARE_URL, 5, "625")

        self.assertEqual(result, "390625")
        self.assertEqual(self.events, [("sleep", 5), ("request", "POST", SQUARE_URL, "625")])

    async def test_response_text_unchanged(self):
        self.response.text.return_value = " 390625\n"
        self.assertEqual(await warm_up(self.session, SQUARE_URL, 0, "625"), " 390625\n")

    async def test_http_error_returned_not_raised(self):
        error = ClientResponseError(request_info=Mock(), history=(), status=503)
        self.response.raise_for_status.side_effect = error

        with self.assertLogs("provisioning.warmup", "WARNING") as ctx:
            result = await warm_up(self.session, SQUARE_URL, 5, "625")

        self.assertIs(result, error)
        self.assertEqual(len(ctx.output), 1)
        self.assertIn(f"Warm up request to {SQUARE_URL} failed", ctx.output[0])

    async def test_connection_error_returned_not_raised(self):
        self.session.request.side_effect = ClientConnectionError("no route")

        result = await warm_up(self.session, SQUARE_URL, 5)

        self.assertIsInstance(result, ClientConnectionError)
        self.sleep.assert_awaited_once_with(5)

    async def test_undecodable_response_returned_not_raised(self):
        error = UnicodeDecodeError("utf-8", b"\xff\xfe390625\x80", 0, 1, "invalid start byte")
        self.response.text.side_effect = error

        with self.assertLogs("provisioning.warmup", "ERROR") as ctx:
            result = await warm_up(self.session, SQUARE_URL, 5, "625")

        self.assertIs(result, error)
        self.assertIn(f"Unexpected error warming up {SQUARE_URL}", ctx.output[0])


class TestPollUntilReady(WarmUpTestCase):
    async def test_ready_after_failures(self):
        self.session.request.side_effect = [
            ClientConnectionError("not yet"),
            ClientConnectionError("not yet"),
            self.request_context,
        ]

        result = await poll_until_ready(self.session, SQUARE_URL, timeout=60, body="625", interval=0)

        self.assertEqual(result, "390625")
        self.assertEqual(self.session.request.call_count, 3)
        self.session.request.assert_called_with("POST", SQUARE_URL, data="625", timeout=ANY)

    async def test_gives_up_after_timeout(self):
        self.session.request.side_effect = ClientConnectionError("never")

        with self.assertLogs("provisioning.warmup", "WARNING"):
            result = await poll_until_ready(self.session, SQUARE_URL, timeout=0, interval=0)

        self.assertIsInstance(result, ClientConnectionError)
        self.sleep.assert_not_awaited()

    async def test_unexpected_error_not_retried_and_returned(self):
        error = UnicodeDecodeError("utf-8", b"\xff\xfe390625\x80", 0, 1, "invalid start byte")
        self.response.text.side_effect = error

        with self.assertLogs("provisioning.warmup", "ERROR"):
            result = await poll_until_ready(self.session, SQUARE_URL, timeout=60, body="625", interval=0)

        self.assertIs(result, error)
        self.assertEqual(self.session.request.call_count, 1)
