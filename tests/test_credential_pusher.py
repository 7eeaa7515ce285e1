from unittest.mock import MagicMock

import pytest

from credential_pusher import (
    CredentialPusher,
    CredentialService,
    Project,
    ServiceConfiguration,
    get_service,
    register_service,
)
from rotation_errors import ConfigurationError
from travis_pusher import TravisCIPusher


class RecordingService(CredentialService):
    name = 'recording'

    def __init__(self, error=None):
        self.error = error
        self.pushed = []

    def validate_configuration(self, config):
        return self.error

    def push_new_credentials(self, config, new_key_id, new_secret):
        self.pushed.append((new_key_id, new_secret))


def test_invalid_configuration_prevents_construction():
    with pytest.raises(ConfigurationError, match='validation CredentialPusher configuration: no token'):
        CredentialPusher(RecordingService('no token'), ServiceConfiguration(''))


def test_push_delegates_to_service():
    service = RecordingService()
    config = ServiceConfiguration('token', [Project('owner/repo', 'KEY', 'SECRET')])

    CredentialPusher(service, config).push('AKIA1', 's3cret')

    assert service.pushed == [('AKIA1', 's3cret')]


def test_validation_happens_once():
    service = MagicMock()
    service.validate_configuration.return_value = None
    pusher = CredentialPusher(service, ServiceConfiguration('token'))

    pusher.push('a', 'b')
    pusher.push('a', 'b')

    service.validate_configuration.assert_called_once()
    assert service.push_new_credentials.call_count == 2


def test_service_interface_is_abstract():
    with pytest.raises(TypeError):
        CredentialService()


def test_get_service_resolves_registered_services():
    register_service(RecordingService)
    assert isinstance(get_service('recording'), RecordingService)
    assert isinstance(get_service('travis'), TravisCIPusher)


def test_get_service_rejects_unknown_name():
    with pytest.raises(ConfigurationError, match="Unknown credential service 'circleci'"):
        get_service('circleci')


class TestProject:

    def test_from_dict(self):
        project = Project.from_dict({
            'project': 'owner/repo',
            'access_key_id_location': 'AWS_ACCESS_KEY_ID',
            'secret_access_key_location': 'AWS_SECRET_ACCESS_KEY',
        })
        assert project == Project('owner/repo', 'AWS_ACCESS_KEY_ID', 'AWS_SECRET_ACCESS_KEY')

    def test_from_dict_reports_missing_fields(self):
        with pytest.raises(ConfigurationError, match='secret_access_key_location'):
            Project.from_dict({'project': 'owner/repo', 'access_key_id_location': 'AWS_ACCESS_KEY_ID'})

    def test_from_dict_rejects_non_string_fields(self):
        with pytest.raises(ConfigurationError, match='project'):
            Project.from_dict({
                'project': 123,
                'access_key_id_location': 'AWS_ACCESS_KEY_ID',
                'secret_access_key_location': 'AWS_SECRET_ACCESS_KEY',
            })
