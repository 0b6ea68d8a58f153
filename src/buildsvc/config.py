"""Service configuration.

Settings come from ``BUILDSVC_*`` environment variables, optionally loaded
from a ``.env`` file first (``${VAR}`` interpolation enabled):

.. code-block:: bash

    BUILDSVC_DATABASE_URL=sqlite:///${HOME}/buildsvc.sqlite
    BUILDSVC_BACKEND_URL=http://localhost:5352
    BUILDSVC_ADMINS=admin,king
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

__all__ = ["ENV_PREFIX", "ServiceConfig", "load_config"]

ENV_PREFIX = "BUILDSVC_"


class ServiceConfig(BaseSettings):
    """
    Runtime settings of the build service core.

    Attributes
    ----------
    database_url : str
        SQLAlchemy URL of the metadata store
    backend_url : str
        Base URL of the source backend
    backend_timeout : float
        Per-call timeout in seconds for backend requests
    admins : list[str]
        Logins with administrator rights
    log_level : str
        Minimum log level
    sql_echo : bool
        Echo SQL statements
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    database_url: str = "sqlite:///buildsvc.sqlite"
    backend_url: str = "http://localhost:5352"
    backend_timeout: float = Field(30.0, gt=0)
    admins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["admin"])
    log_level: str = "INFO"
    sql_echo: bool = False

    @field_validator("admins", mode="before")
    @classmethod
    def _split_admins(cls, value):
        if isinstance(value, str):
            return [login.strip() for login in value.split(",") if login.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


def load_config(env_file: Path | None = None) -> ServiceConfig:
    """
    Load configuration, reading ``env_file`` into the environment first.

    Parameters
    ----------
    env_file : Path | None, optional
        Path to a ``.env`` file

    Raises
    ------
    FileNotFoundError
        If ``env_file`` is given but does not exist
    """
    if env_file is not None:
        if not env_file.exists():
            msg = f"Environment file not found: {env_file}"
            raise FileNotFoundError(msg)
        load_dotenv(env_file, override=True, interpolate=True)
    return ServiceConfig()
