import json
import os
import re
from dataclasses import dataclass
from typing import Optional

from credential_pusher import Project, ServiceConfiguration
from rotation_errors import ConfigurationError

DEFAULT_INTERVAL = 'rate(1 hour)'
DEFAULT_SERVICE = 'travis'
DEFAULT_GRACE_PERIOD = 1.0
# Covers one run, and stays well under the rotation interval.
DEFAULT_LOCK_LEASE = 300

_RATE_RE = re.compile(r'^rate\(\s*(\d+)\s+(minute|minutes|hour|hours|day|days)\s*\)$')
_UNIT_SECONDS = {'minute': 60, 'hour': 3600, 'day': 86400}
_TRUE = ('1', 'true', 'yes', 'on')


@dataclass
class RotationConfig:
    user_name: str
    interval: str
    service_name: str
    service_config: ServiceConfiguration
    grace_period: float = DEFAULT_GRACE_PERIOD
    dry_run: bool = False
    lock_table: Optional[str] = None
    lock_lease: Optional[int] = None

    @property
    def interval_seconds(self):
        return parse_rate(self.interval)

    @property
    def lease_seconds(self):
        if self.lock_lease is not None:
            return self.lock_lease
        return min(DEFAULT_LOCK_LEASE, self.interval_seconds // 2)


def parse_rate(expression):
    """Convert a schedule expression such as ``rate(2 hours)`` into seconds."""
    match = _RATE_RE.match(expression.strip())
    if not match:
        raise ConfigurationError(f"Unsupported rotation interval '{expression}', expected rate(N unit)")
    value, unit = int(match.group(1)), match.group(2)
    if value <= 0:
        raise ConfigurationError(f"Rotation interval must be positive, got '{expression}'")
    # AWS only accepts the singular unit for a value of 1
    if (value == 1) != (not unit.endswith('s')):
        raise ConfigurationError(f"Rotation interval '{expression}' has a mismatched unit")
    return value * _UNIT_SECONDS[unit.rstrip('s')]


def load_projects(environ):
    raw = environ.get('PUSH_PROJECTS')
    path = environ.get('PUSH_PROJECTS_FILE')
    if raw and path:
        raise ConfigurationError("Set only one of PUSH_PROJECTS and PUSH_PROJECTS_FILE")
    try:
        if path:
            with open(path) as f:
                entries = json.load(f)
        elif raw:
            entries = json.loads(raw)
        else:
            return []
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Could not read push projects: {e}") from e

    if not isinstance(entries, list):
        raise ConfigurationError("Push projects must be a JSON list")
    return [Project.from_dict(entry) for entry in entries]


def load_config(environ=None, **overrides):
    environ = os.environ if environ is None else environ

    user_name = overrides.get('user_name') or environ.get('TARGET_USER')
    if not user_name:
        raise ConfigurationError("TARGET_USER is not set")

    interval = environ.get('ROTATION_INTERVAL', DEFAULT_INTERVAL)
    parse_rate(interval)

    grace_period = overrides.get('grace_period')
    if grace_period is None:
        try:
            grace_period = float(environ.get('GRACE_PERIOD_SECONDS', DEFAULT_GRACE_PERIOD))
        except ValueError:
            raise ConfigurationError("GRACE_PERIOD_SECONDS must be a number") from None
    if grace_period < 0:
        raise ConfigurationError("Grace period cannot be negative")

    dry_run = overrides.get('dry_run') or environ.get('DRY_RUN', '').lower() in _TRUE

    lock_lease = environ.get('LOCK_LEASE_SECONDS')
    if lock_lease is not None:
        try:
            lock_lease = int(lock_lease)
        except ValueError:
            raise ConfigurationError("LOCK_LEASE_SECONDS must be a whole number") from None
        if not 0 < lock_lease < parse_rate(interval):
            raise ConfigurationError(
                f"LOCK_LEASE_SECONDS must be positive and shorter than the rotation interval ({interval})")

    return RotationConfig(
        user_name=user_name,
        interval=interval,
        service_name=environ.get('CREDENTIAL_SERVICE', DEFAULT_SERVICE),
        service_config=ServiceConfiguration(
            access_key=environ.get('CREDENTIAL_SERVICE_TOKEN', ''),
            projects=load_projects(environ),
        ),
        grace_period=grace_period,
        dry_run=dry_run,
        lock_table=environ.get('LOCK_TABLE') or None,
        lock_lease=lock_lease,
    )
