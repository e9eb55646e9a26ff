from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError

DEFAULT_REGION = "us-east-1"

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaticCredentials:
    access_key: str
    secret_key: str


@dataclass(frozen=True)
class ProfileCredentials:
    name: str


@dataclass(frozen=True)
class DefaultCredentials:
    pass


Credentials = Union[StaticCredentials, ProfileCredentials, DefaultCredentials]


@dataclass(frozen=True)
class Region:
    # None means the region is taken from the provider chain.
    name: Optional[str] = None


@dataclass(frozen=True)
class Endpoint:
    url: str
    signing_region: Optional[str] = None


Location = Union[Region, Endpoint]


class AuthenticationError(Exception):
    """Raised when no S3 client could be built for the requested connection."""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        endpoint: Optional[str] = None,
        region: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.endpoint = endpoint
        self.region = region


@dataclass(frozen=True)
class ConnectionConfig:
    credentials: Credentials
    location: Location
    path_style: Optional[bool] = None

    def __post_init__(self) -> None:
        credentials = self.credentials
        if isinstance(credentials, StaticCredentials):
            if not credentials.access_key or not credentials.secret_key:
                raise ValueError("static credentials need an access key and a secret key")
        elif isinstance(credentials, ProfileCredentials):
            if not credentials.name or not credentials.name.strip():
                raise ValueError("profile name must not be empty")
        elif not isinstance(credentials, DefaultCredentials):
            raise ValueError(f"unsupported credentials: {credentials!r}")

        location = self.location
        if isinstance(location, Endpoint):
            parsed = urlparse(location.url or "")
            if not parsed.scheme or not parsed.netloc:
                raise ValueError(f"endpoint must be an absolute URL: {location.url!r}")
            if location.signing_region is not None and not location.signing_region.strip():
                raise ValueError("signing region must not be empty")
        elif isinstance(location, Region):
            if location.name is not None and not location.name.strip():
                raise ValueError("region must not be empty")
        else:
            raise ValueError(f"unsupported location: {location!r}")

        if self.path_style is not None and not isinstance(self.path_style, bool):
            raise ValueError("path_style must be a bool or None")

    @classmethod
    def from_inputs(
        cls,
        auth: Union[tuple[str, str], StaticCredentials, None] = None,
        region: Optional[str] = None,
        endpoint: Optional[str] = None,
        path_style: Optional[bool] = None,
        profile: Optional[str] = None,
    ) -> "ConnectionConfig":
        """Build a config applying the precedence rules.

        Explicit credentials win over a named profile, which wins over the
        default chain. An endpoint wins over a region for routing; the region
        is then only used to sign requests.
        """
        credentials: Credentials
        if isinstance(auth, StaticCredentials):
            credentials = auth
        elif auth is not None:
            username, password = auth
            credentials = StaticCredentials(access_key=username, secret_key=password)
        elif profile is not None:
            credentials = ProfileCredentials(name=profile)
        else:
            credentials = DefaultCredentials()

        location: Location
        if endpoint:
            location = Endpoint(url=endpoint, signing_region=region)
        else:
            location = Region(name=region)
        return cls(credentials=credentials, location=location, path_style=path_style)


def _session(credentials: Credentials, session_factory: Callable[..., object]):
    if isinstance(credentials, StaticCredentials):
        return session_factory(
            aws_access_key_id=credentials.access_key,
            aws_secret_access_key=credentials.secret_key,
        )
    if isinstance(credentials, ProfileCredentials):
        return session_factory(profile_name=credentials.name)
    return session_factory()


def resolve_region(explicit: Optional[str], session: object = None) -> str:
    if explicit:
        return explicit
    session_region = getattr(session, "region_name", None) if session else None
    if session_region:
        return session_region
    return DEFAULT_REGION


def _client_config(path_style: Optional[bool]) -> Optional[Config]:
    if path_style is None:
        return None
    return Config(s3={"addressing_style": "path" if path_style else "virtual"})


def _failure_message(config: ConnectionConfig, region: Optional[str]) -> str:
    location = config.location
    if isinstance(location, Endpoint):
        return (
            f"Failed to connect to endpoint [{location.url}] "
            f"using region [{region}]"
        )
    return f"Failed to connect using region [{region}]"


def connect(
    config: ConnectionConfig,
    session_factory: Callable[..., object] = boto3.session.Session,
    logger: Optional[logging.Logger] = None,
):
    """Return an S3 client for ``config``.

    Raises AuthenticationError when the session or client cannot be built;
    no partial connection is returned.
    """
    log = logger or LOG
    location = config.location
    explicit_region = (
        location.signing_region if isinstance(location, Endpoint) else location.name
    )
    region: Optional[str] = explicit_region
    endpoint = location.url if isinstance(location, Endpoint) else None
    try:
        session = _session(config.credentials, session_factory)
        region = resolve_region(explicit_region, session)
        kwargs: dict[str, object] = {"region_name": region}
        if endpoint:
            kwargs["endpoint_url"] = endpoint
        client_config = _client_config(config.path_style)
        if client_config is not None:
            kwargs["config"] = client_config
        client = session.client("s3", **kwargs)
    except (BotoCoreError, ValueError) as exc:
        raise AuthenticationError(
            _failure_message(config, region),
            cause=exc,
            endpoint=endpoint,
            region=region,
        ) from exc

    if endpoint:
        log.debug("Connected to S3 endpoint %s (signing region %s).", endpoint, region)
    else:
        log.debug("Connected to S3 in region %s.", region)
    return client


def connect_from_inputs(
    auth: Union[tuple[str, str], StaticCredentials, None] = None,
    region: Optional[str] = None,
    endpoint: Optional[str] = None,
    path_style: Optional[bool] = None,
    profile: Optional[str] = None,
    session_factory: Callable[..., object] = boto3.session.Session,
    logger: Optional[logging.Logger] = None,
):
    config = ConnectionConfig.from_inputs(
        auth=auth,
        region=region,
        endpoint=endpoint,
        path_style=path_style,
        profile=profile,
    )
    return connect(config, session_factory=session_factory, logger=logger)
