import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from rotation_errors import ConfigurationError


@dataclass
class Project:
    """A place inside a third-party service that holds the rotated credentials.

    For a CI provider this is a repository, and the two locations are the
    names of the environment variables carrying the key id and the secret.
    """

    project: str
    access_key_id_location: str
    secret_access_key_location: str

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ConfigurationError(f"Project entry must be an object, got {data!r}")
        missing = [name for name in ('project', 'access_key_id_location', 'secret_access_key_location')
                   if not data.get(name) or not isinstance(data[name], str)]
        if missing:
            raise ConfigurationError(f"Project entry {data!r} is missing or has non-string {', '.join(missing)}")
        return cls(data['project'], data['access_key_id_location'], data['secret_access_key_location'])


@dataclass
class ServiceConfiguration:
    # Token used to authenticate with the service, e.g. a Travis CI API token.
    access_key: str
    projects: List[Project] = field(default_factory=list)


class CredentialService(ABC):
    """A third-party system that consumes the rotated credentials."""

    name = None

    @abstractmethod
    def validate_configuration(self, config: ServiceConfiguration) -> Optional[str]:
        """Return a user-facing problem description, or None if the config is usable."""

    @abstractmethod
    def push_new_credentials(self, config: ServiceConfiguration, new_key_id: str, new_secret: str) -> None:
        """Overwrite the stored credentials in every configured project.

        Pushing the same pair twice must leave the service in the same state.
        """


class CredentialPusher:
    """Validated pairing of a CredentialService with its configuration."""

    def __init__(self, service, config):
        error = service.validate_configuration(config)
        if error:
            raise ConfigurationError(f"validation CredentialPusher configuration: {error}")
        self.service = service
        self.config = config

    def push(self, new_key_id, new_secret):
        logging.info(f"Pushing new key {new_key_id} to {len(self.config.projects)} {self.service.name} project(s)")
        self.service.push_new_credentials(self.config, new_key_id, new_secret)


_SERVICES = {}


def register_service(cls):
    _SERVICES[cls.name] = cls
    return cls


def get_service(name):
    try:
        return _SERVICES[name]()
    except KeyError:
        known = ', '.join(sorted(_SERVICES)) or 'none'
        raise ConfigurationError(f"Unknown credential service '{name}' (known: {known})") from None
