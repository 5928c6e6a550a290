"""Backend connection configuration."""
import json
import logging
import re
from pathlib import Path
from typing import Optional, Union

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Fields a complete web-app configuration blob must provide.
REQUIRED_FIELDS = (
    "api_key",
    "auth_domain",
    "project_id",
    "storage_bucket",
    "messaging_sender_id",
    "app_id",
)

PLACEHOLDER_PROJECT_ID = "placeholder-project"

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


class SlateConfig(BaseSettings):
    """
    Connection settings for the document store and the identity provider.

    Values come from ``SLATE_*`` environment variables (or a ``.env`` file),
    or from a stored JSON blob using the web-app keys (``apiKey``,
    ``projectId``, ...). The object is passed explicitly to
    :class:`~slate_feed.firestore_client.FirestoreDB` and
    :class:`~slate_feed.identity.IdentityToolkitProvider`; switching backends
    means building new clients from a new config.
    """

    model_config = SettingsConfigDict(
        env_prefix="SLATE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    api_key: str = ""
    auth_domain: str = ""
    project_id: str = ""
    storage_bucket: str = ""
    messaging_sender_id: str = ""
    app_id: str = ""
    measurement_id: Optional[str] = None

    # Firestore database ID; None selects the default database.
    database: Optional[str] = None
    emulator_host: Optional[str] = None
    auth_emulator_host: Optional[str] = None
    identity_toolkit_url: str = "https://identitytoolkit.googleapis.com/v1"

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.project_id)

    @property
    def is_complete(self) -> bool:
        return all(getattr(self, name) for name in REQUIRED_FIELDS)

    @property
    def is_placeholder(self) -> bool:
        return self.project_id == PLACEHOLDER_PROJECT_ID

    @classmethod
    def placeholder(cls) -> "SlateConfig":
        """A configuration that constructs clients but reaches no real project."""
        return cls(
            api_key="placeholder-key",
            auth_domain="placeholder.firebaseapp.com",
            project_id=PLACEHOLDER_PROJECT_ID,
            storage_bucket="placeholder.appspot.com",
            messaging_sender_id="123456789",
            app_id="1:123456789:web:placeholder",
            measurement_id="G-PLACEHOLDER",
        )

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "SlateConfig":
        """Load a stored configuration blob; keys may be camelCase or snake_case."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration in {path} must be a JSON object")
        return cls(**{_to_snake(key): value for key, value in raw.items()})

    def to_json_file(self, path: Union[str, Path]) -> None:
        """Persist the connection fields using the web-app key names."""
        data = {
            _to_camel(name): value
            for name, value in self.model_dump(exclude_none=True).items()
        }
        Path(path).write_text(json.dumps(data, indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "SlateConfig":
        """
        Resolve the active configuration.

        1. The stored JSON blob at ``path``, when it exists and parses.
        2. Environment variables, when they provide an API key and project.
        3. A placeholder configuration: every remote call will fail and the
           feed will be empty.
        """
        if path is not None and Path(path).exists():
            try:
                config = cls.from_json_file(path)
                logger.info("Using backend config from %s", path)
                return config
            except (ValueError, TypeError) as exc:
                logger.error("Failed to parse stored config %s: %s", path, exc)

        env_config = cls()
        if env_config.has_credentials:
            logger.info("Using backend config from environment variables")
            return env_config

        logger.warning("No backend configuration found. Using placeholder config.")
        return cls.placeholder()
