# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import Mapping
from datetime import datetime
from logging import Logger
from re import sub
from typing import Final
from uuid import uuid4

SITE_HOST_SUFFIX: Final = ".azurewebsites.net"

RESOURCE_GROUP_PREFIX: Final = "rg1NEMV_"
HOSTING_PLAN_PREFIX: Final = "plan1-"
STORAGE_ACCOUNT_PREFIX: Final = "funcstore"
SITE_PREFIXES: Final = ("webapp1-", "webapp2-", "webapp3-", "webapp4-", "webapp5-")

RANDOM_NAME_LENGTH: Final = 20
STORAGE_ACCOUNT_MAX_LENGTH: Final = 24

SQUARE_FUNCTION_PATH: Final = "/api/square"


def generate_unique_id() -> str:
    """Generate a unique ID which is 12 characters long using hex characters

    Example:
    >>> generate_unique_id()
    "c5653797a664"
    """
    return str(uuid4())[-12:]


def create_random_name(prefix: str, length: int = RANDOM_NAME_LENGTH) -> str:
    """Append random hex characters to `prefix`, the result is at most `length` characters long"""
    return (prefix + generate_unique_id() + generate_unique_id())[: max(length, len(prefix))]


def get_storage_account_name(prefix: str = STORAGE_ACCOUNT_PREFIX) -> str:
    # storage account names only allow lowercase letters and digits
    return create_random_name(sub(r"[^a-z0-9]", "", prefix.lower()), STORAGE_ACCOUNT_MAX_LENGTH)


def get_site_host(site_name: str) -> str:
    return site_name + SITE_HOST_SUFFIX


def get_site_url(site_name: str, path: str = "") -> str:
    return f"http://{get_site_host(site_name)}{path}"


def is_in_resource_group(resource_id: str, resource_group: str) -> bool:
    """Check whether an ARM resource id lives in `resource_group`, ARM ids are case insensitive"""
    parts = resource_id.lower().split("/")
    try:
        return parts[parts.index("resourcegroups") + 1] == resource_group.lower()
    except (ValueError, IndexError):
        return False


def now() -> str:
    """Return the current time in ISO format"""
    return datetime.now().isoformat()


def log_errors(
    log: Logger,
    message: str,
    *maybe_errors: object | Exception,
    reraise: bool = False,
    extra: Mapping[str, str] | None = None,
) -> list[Exception]:
    """Log and return any errors in `maybe_errors`.
    If reraise is True, the first error will be raised"""
    errors = [e for e in maybe_errors if isinstance(e, Exception)]
    if errors:
        log.error("%s: %s", message, errors, extra=extra)
        if reraise:
            raise errors[0]

    return errors

