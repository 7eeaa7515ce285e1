import logging
from urllib.parse import quote

import requests

from credential_pusher import CredentialService, register_service
from rotation_errors import CredentialPushError, LocationNotFoundError

# https://developer.travis-ci.com/resource/env_var
TRAVIS_API_URL = "https://api.travis-ci.com"
REQUEST_TIMEOUT = 10


@register_service
class TravisCIPusher(CredentialService):
    """Pushes credentials into Travis CI repository environment variables."""

    name = 'travis'

    def validate_configuration(self, config):
        if not config.access_key:
            return "No Travis CI access key provided."
        if not config.projects:
            return "No projects to push credentials to."
        return None

    def push_new_credentials(self, config, new_key_id, new_secret):
        headers = self._headers(config.access_key)

        for project in config.projects:
            logging.info(f"Pushing new credentials to Travis CI project '{project.project}'")
            # owner/repo has to become owner%2Frepo inside the URL path.
            repo_slug = quote(project.project, safe='')

            env_vars = self._list_env_vars(repo_slug, headers)
            key_id_var = self._find_env_var(env_vars, project.access_key_id_location)
            secret_var = self._find_env_var(env_vars, project.secret_access_key_location)

            logging.info(f"Updating env var '{project.access_key_id_location}' ({key_id_var})")
            status = self._update_env_var(repo_slug, key_id_var, new_key_id, True, headers)
            logging.info(f"Updated AWS access key ID. Got response code ({status})")

            logging.info(f"Updating env var '{project.secret_access_key_location}' ({secret_var})")
            status = self._update_env_var(repo_slug, secret_var, new_secret, False, headers)
            logging.info(f"Updated AWS secret access key. Got response code ({status})")

    def _headers(self, token):
        return {
            "Travis-API-Version": "3",
            "Authorization": f"token {token}",
            "Content-Type": "application/json",
            "User-Agent": "AWS access key rotator",
        }

    def _list_env_vars(self, repo_slug, headers):
        response = requests.get(f"{TRAVIS_API_URL}/repo/{repo_slug}/env_vars",
                                headers=headers, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        data = response.json() or {}
        if data.get('env_vars') is None:
            raise CredentialPushError("Didn't get list of Travis project credentials as expected.")
        return data['env_vars']

    def _find_env_var(self, env_vars, name):
        for env_var in env_vars:
            if env_var.get('id') and env_var.get('name') == name:
                return env_var['id']
        raise LocationNotFoundError(f"Unable to find Travis CI environment variable with name {name}")

    def _update_env_var(self, repo_slug, env_var_id, value, public, headers):
        response = requests.patch(
            f"{TRAVIS_API_URL}/repo/{repo_slug}/env_var/{env_var_id}",
            headers=headers,
            json={"env_var.value": value, "env_var.public": public},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.status_code
