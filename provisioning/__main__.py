# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from asyncio import run

# project
from provisioning.workflow import main


def cli() -> None:
    run(main())


if __name__ == "__main__":  # pragma: no cover
    cli()
