"""Configuration helpers for ez_mongo connections.

Every field can be passed explicitly; anything left out falls back to the
``MONGO_*`` environment variables (a ``.env`` file is honoured), then to the
defaults below.
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote_plus

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

from .errors import InvalidConnectionTargetError

load_dotenv(find_dotenv(usecwd=True))

DEFAULT_PORT = 27017


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


class EzMongoSettings(BaseModel):
    """Connection target plus the behaviour toggles of an ``EzMongo`` instance."""

    host: Union[str, List[str]] = Field(default_factory=lambda: _env("MONGO_HOST", "localhost"))
    port: Union[int, List[int]] = Field(default_factory=lambda: _env("MONGO_PORT", str(DEFAULT_PORT)))
    username: Optional[str] = Field(default_factory=lambda: _env("MONGO_USERNAME"))
    password: Optional[str] = Field(default_factory=lambda: _env("MONGO_PASSWORD"))
    database: Optional[str] = Field(default_factory=lambda: _env("MONGO_DB_NAME"))

    # passed straight to the driver client
    connection_options: Dict[str, Any] = Field(default_factory=dict)

    use_short_id: bool = Field(default_factory=lambda: _env("MONGO_USE_SHORT_ID", "true"))
    safe_id: bool = Field(default_factory=lambda: _env("MONGO_SAFE_ID", "true"))
    safe_modify: bool = Field(default_factory=lambda: _env("MONGO_SAFE_MODIFY", "true"))
    require_fields: bool = Field(default_factory=lambda: _env("MONGO_REQUIRE_FIELDS", "false"))

    log_connection: bool = Field(default_factory=lambda: _env("MONGO_LOG_CONNECTION", "true"))
    log_pending: bool = Field(default_factory=lambda: _env("MONGO_LOG_PENDING", "false"))

    lazy_connect: bool = Field(default_factory=lambda: _env("MONGO_LAZY_CONNECT", "false"))
    disabled: bool = Field(default_factory=lambda: _env("MONGO_DISABLED", "false"))
    use_srv: bool = Field(default_factory=lambda: _env("MONGO_USE_SRV", "false"))

    model_config = {"validate_default": True}

    @field_validator("host", mode="before")
    @classmethod
    def _split_hosts(cls, value: Any) -> Any:
        if isinstance(value, str) and "," in value:
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("port", mode="before")
    @classmethod
    def _split_ports(cls, value: Any) -> Any:
        if isinstance(value, str) and "," in value:
            return [int(part) for part in value.split(",") if part.strip()]
        return value


def build_uri(settings: EzMongoSettings, *, mask_password: bool = False) -> str:
    """Build the ``mongodb://`` (or ``mongodb+srv://``) URI for ``settings``."""

    uri = "mongodb+srv://" if settings.use_srv else "mongodb://"

    if settings.username and settings.password:
        password = "****" if mask_password else quote_plus(settings.password)
        uri += f"{quote_plus(settings.username)}:{password}@"

    if isinstance(settings.host, list):
        if settings.use_srv:
            raise InvalidConnectionTargetError("Lists of hosts cannot be used with SRV")
        ports = settings.port
        if not isinstance(ports, list):
            ports = [ports] * len(settings.host)
        if len(ports) != len(settings.host):
            raise InvalidConnectionTargetError(
                f"Got {len(settings.host)} hosts but {len(ports)} ports"
            )
        uri += ",".join(f"{host}:{port}" for host, port in zip(settings.host, ports))
    else:
        if isinstance(settings.port, list):
            raise InvalidConnectionTargetError("A list of ports needs a matching list of hosts")
        uri += settings.host
        if not settings.use_srv:
            uri += f":{settings.port}"
        elif settings.port != DEFAULT_PORT:
            raise InvalidConnectionTargetError(
                f"SRV cannot be used with port {settings.port}; it must use the default port {DEFAULT_PORT}"
            )

    uri += f"/{settings.database}"

    if settings.use_srv:
        uri += "?retryWrites=true&w=majority"

    return uri
