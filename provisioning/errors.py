# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import Iterator
from contextlib import contextmanager
from typing import ClassVar, Literal

# 3p
from azure.core.exceptions import AzureError, HttpResponseError

ErrorKind = Literal["cloud_api", "configuration", "cleanup_skipped", "deployment"]


class WorkflowError(Exception):
    """Base class for errors the provisioning workflow reports in its result"""

    kind: ClassVar[ErrorKind]


class CloudApiError(WorkflowError):
    kind = "cloud_api"

    def __init__(self, operation: str, message: str, status_code: int | None = None) -> None:
        self.operation = operation
        self.status_code = status_code
        status = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"Failed to {operation}{status}: {message}")


class ConfigurationError(WorkflowError):
    kind = "configuration"


class MissingConfigOptionError(ConfigurationError):
    def __init__(self, option: str) -> None:
        self.option = option
        super().__init__(f"Missing required configuration option: {option}")


class CleanupSkipped(WorkflowError):
    kind = "cleanup_skipped"

    def __init__(self, message: str = "No resource group was created") -> None:
        super().__init__(message)


class DeploymentError(WorkflowError):
    kind = "deployment"


class FtpError(DeploymentError):
    pass


class GitError(DeploymentError):
    def __init__(self, command: str, returncode: int, output: str) -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(f"`{command}` exited with status {returncode}\n{output}")


@contextmanager
def cloud_api_errors(operation: str) -> Iterator[None]:
    """Translates Azure SDK errors raised inside the block into a CloudApiError for `operation`"""
    try:
        yield
    except AzureError as e:
        status_code = e.status_code if isinstance(e, HttpResponseError) else None
        raise CloudApiError(operation, e.message or str(e), status_code) from e
