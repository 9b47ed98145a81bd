# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from typing import Final, Literal, NamedTuple
from urllib.parse import quote
from xml.etree.ElementTree import ParseError, fromstring

PublishingProfileFormat = Literal["Ftp", "WebDeploy"]

FTP_FORMAT: Final = "Ftp"
WEB_DEPLOY_FORMAT: Final = "WebDeploy"

FORMAT_TO_PUBLISH_METHOD: dict[PublishingProfileFormat, str] = {
    FTP_FORMAT: "FTP",
    WEB_DEPLOY_FORMAT: "MSDeploy",
}


class InvalidPublishingProfileError(Exception):
    pass


class PublishingProfile(NamedTuple):
    """Credentials for push based deployment. `url` is the FTP root for FTP profiles
    and the SCM git remote for web deploy profiles"""

    url: str
    username: str
    password: str
    method: str

    def __repr__(self) -> str:
        return f"PublishingProfile(url={self.url!r}, username={self.username!r}, method={self.method!r})"

    @property
    def authenticated_git_url(self) -> str:
        """Git remote with the credentials embedded, never log this"""
        scheme, _, rest = self.url.partition("://")
        return f"{scheme}://{quote(self.username, safe='')}:{quote(self.password, safe='')}@{rest}"


def get_git_url(publish_url: str, site_name: str) -> str:
    # web deploy publish urls look like `<site>.scm.azurewebsites.net:443`
    return f"https://{publish_url}/{site_name}.git"


def parse_publishing_profile(xml: str, profile_format: PublishingProfileFormat, site_name: str) -> PublishingProfile:
    """Pick the profile matching `profile_format` out of the publishing profile xml"""
    try:
        root = fromstring(xml)
    except ParseError as e:
        raise InvalidPublishingProfileError(f"Publishing profile for {site_name} is not valid xml: {e}") from e

    method = FORMAT_TO_PUBLISH_METHOD[profile_format]
    element = next(
        (p for p in root.iter("publishProfile") if p.get("publishMethod", "").lower() == method.lower()),
        None,
    )
    if element is None:
        raise InvalidPublishingProfileError(f"No {method} publishing profile found for {site_name}")

    publish_url = element.get("publishUrl", "")
    username = element.get("userName", "")
    password = element.get("userPWD", "")
    if not (publish_url and username and password):
        raise InvalidPublishingProfileError(f"Incomplete {method} publishing profile for {site_name}")

    if profile_format == WEB_DEPLOY_FORMAT:
        url = get_git_url(publish_url, element.get("msdeploySite") or site_name)
    else:
        url = publish_url
    return PublishingProfile(url=url, username=username, password=password, method=method)
