"""Loading account credentials from AWS config files and the environment."""

import collections
import configparser
import logging
import os
import pathlib

from .models import Account

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


def _default_region() -> str:
    return os.environ.get("AWS_DEFAULT_REGION") or DEFAULT_REGION


def _read_section(path: pathlib.Path | None, section: str) -> dict[str, str]:
    if path is None or not path.exists():
        return {}
    parser = configparser.ConfigParser()
    parser.read(path)
    return dict(parser[section]) if parser.has_section(section) else {}


def load_account(
    service: str = "s3",
    profile_name: str = "default",
    config_path: str | pathlib.Path | None = None,
    credentials_path: str | pathlib.Path | None = None,
) -> Account:
    """Reads a profile from the AWS shared config and credentials files.

    Values in the credentials file win over the config file, where every
    profile but ``default`` lives in a ``[profile <name>]`` section.
    """
    if config_path is None:
        config_path = pathlib.Path.home() / ".aws" / "config"
    config_section = (
        profile_name if profile_name == "default" else f"profile {profile_name}"
    )
    if credentials_path is not None:
        credentials_path = pathlib.Path(credentials_path)
    settings = collections.ChainMap(
        _read_section(credentials_path, profile_name),
        _read_section(pathlib.Path(config_path), config_section),
    )

    for key in ("aws_access_key_id", "aws_secret_access_key"):
        if not settings.get(key):
            raise ValueError(
                f"{key} missing from profile '{profile_name}' "
                "in the config and credentials files"
            )

    region = settings.get("region") or _default_region()
    logger.debug("Loaded profile %r for region %s", profile_name, region)

    return Account(
        access_key=settings["aws_access_key_id"],
        secret_key=settings["aws_secret_access_key"],
        region=region,
        service=service,
        session_token=settings.get("aws_session_token") or None,
    )


def account_from_env(service: str = "s3") -> Account:
    access_key = os.getenv("AWS_ACCESS_KEY_ID")
    secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")

    if not access_key or not secret_key:
        raise ValueError("AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set")

    return Account(
        access_key=access_key,
        secret_key=secret_key,
        region=_default_region(),
        service=service,
        session_token=os.getenv("AWS_SESSION_TOKEN") or None,
    )
