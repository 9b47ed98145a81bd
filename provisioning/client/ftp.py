# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from asyncio import to_thread
from collections.abc import Iterable
from ftplib import FTP_TLS, all_errors, error_perm
from logging import getLogger
from pathlib import Path
from posixpath import dirname, join
from typing import NamedTuple
from urllib.parse import urlparse

# project
from provisioning.client.publishing_profile import PublishingProfile
from provisioning.errors import FtpError

FTP_PORT = 21
FTP_TIMEOUT_SECONDS = 60

log = getLogger(__name__)


class FtpUpload(NamedTuple):
    local_path: Path
    # relative to the FTP root of the publishing profile, always `/` separated
    remote_path: str


def ensure_remote_dirs(ftp: FTP_TLS, root: str, remote_dir: str) -> None:
    """Create each directory of `remote_dir` under `root`, existing directories are fine"""
    current = root
    for part in filter(None, remote_dir.split("/")):
        current = join(current, part)
        try:
            ftp.mkd(current)
        except error_perm as e:
            # 550 means the directory is already there
            if not str(e).startswith("550"):
                raise


def upload_files(profile: PublishingProfile, uploads: Iterable[FtpUpload]) -> list[str]:
    url = urlparse(profile.url)
    root = url.path or "/"
    uploaded: list[str] = []
    with FTP_TLS(timeout=FTP_TIMEOUT_SECONDS) as ftp:
        ftp.connect(url.hostname or "", url.port or FTP_PORT)
        ftp.login(profile.username, profile.password)
        ftp.prot_p()
        for upload in uploads:
            remote_path = join(root, upload.remote_path)
            ensure_remote_dirs(ftp, root, dirname(upload.remote_path))
            log.info("Uploading %s to %s", upload.local_path, remote_path)
            with open(upload.local_path, "rb") as f:
                ftp.storbinary(f"STOR {remote_path}", f)
            uploaded.append(remote_path)
    return uploaded


async def deploy_via_ftp(profile: PublishingProfile, uploads: Iterable[FtpUpload]) -> list[str]:
    """Uploads every file to its remote path, returns the absolute remote paths written"""
    uploads = list(uploads)
    try:
        return await to_thread(upload_files, profile, uploads)
    except all_errors as e:
        raise FtpError(f"Failed to upload {len(uploads)} files to {profile.url}: {e}") from e
