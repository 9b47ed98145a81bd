# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from asyncio import create_subprocess_exec, to_thread
from asyncio.subprocess import DEVNULL, PIPE, STDOUT
from logging import getLogger
from os import environ
from pathlib import Path
from shutil import copytree
from tempfile import TemporaryDirectory

# project
from provisioning.client.publishing_profile import PublishingProfile
from provisioning.errors import GitError

DEPLOY_BRANCH = "master"
COMMIT_MESSAGE = "Initial commit"
COMMITTER = ("-c", "user.name=provisioning", "-c", "user.email=provisioning@localhost")

log = getLogger(__name__)


def git_environment() -> dict[str, str]:
    # git must fail rather than wait on a credential prompt
    return {**environ, "GIT_TERMINAL_PROMPT": "0"}


async def run_git(*args: str, cwd: Path, display: str | None = None) -> str:
    """Run a git command in `cwd` and return its output. `display` replaces the
    command in errors and logs so credentials never leave this function"""
    command = display or "git " + " ".join(args)
    log.debug("Running `%s` in %s", command, cwd)
    try:
        process = await create_subprocess_exec(
            "git", *args, cwd=cwd, stdin=DEVNULL, stdout=PIPE, stderr=STDOUT, env=git_environment()
        )
    except OSError as e:
        raise GitError(command, -1, str(e)) from e
    output, _ = await process.communicate()
    text = output.decode(errors="replace")
    if process.returncode != 0:
        raise GitError(command, process.returncode or -1, text)
    return text


async def commit_all(repo_path: Path) -> None:
    await run_git("init", cwd=repo_path)
    await run_git("add", "--all", cwd=repo_path)
    await run_git(*COMMITTER, "commit", "--allow-empty", "-m", COMMIT_MESSAGE, cwd=repo_path)


async def push(profile: PublishingProfile, repo_path: Path) -> None:
    await run_git(
        "push",
        "--force",
        profile.authenticated_git_url,
        f"HEAD:refs/heads/{DEPLOY_BRANCH}",
        cwd=repo_path,
        display=f"git push --force {profile.url} HEAD:refs/heads/{DEPLOY_BRANCH}",
    )


async def deploy_via_local_git(profile: PublishingProfile, local_repo_path: Path) -> None:
    """Force push `local_repo_path` to the site's git remote.
    Plain directories are committed in a scratch copy so the source is left untouched"""
    if (local_repo_path / ".git").exists():
        await push(profile, local_repo_path)
    else:
        with TemporaryDirectory() as scratch:
            repo_path = Path(scratch) / local_repo_path.name
            await to_thread(copytree, local_repo_path, repo_path)
            await commit_all(repo_path)
            await push(profile, repo_path)
    log.info("Pushed %s to %s", local_repo_path, profile.url)
