#!/usr/bin/env python3
"""Rotate an IAM user's access keys one step per invocation.

No rotation state is stored anywhere. The shape of the user's current key
set is enough to know what to do next, so each run (a scheduled Lambda or a
cron job) lists the keys and takes exactly one action:

  * zero or one key      -> create a new key and push it to consumers
  * two keys, older live -> mark the older key Inactive
  * two keys, older dead -> delete the older key
  * anything else        -> refuse to touch the user (KeyInvariantError)

A superseded key therefore stays usable for one more interval, and the
schedule interval has to be longer than any consumer holds on to a key.
Runs for the same user must never overlap; set LOCK_TABLE when the
scheduler cannot guarantee that.
"""

import argparse
import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

import travis_pusher  # noqa: F401  registers the 'travis' service
from access_key_store import ACTIVE, INACTIVE, AccessKeyStore
from credential_pusher import CredentialPusher, get_service
from execution_policy import MANAGED_POLICY_ARNS, key_rotation_policy, lambda_assume_role_policy
from rotation_config import load_config
from rotation_errors import ConfigurationError, KeyInvariantError, RotationInProgressError
from rotation_lock import rotation_lock

# CONFIGURABLE PARAMETERS
MAX_KEYS = 2  # IAM hard limit per user, cannot be raised
LISTABLE_ATTEMPTS = 3  # polls for a new key after the grace period

CREATE = 'create'
INVALIDATE = 'invalidate'
DELETE = 'delete'
FATAL = 'fatal'

# Set up logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


@dataclass(frozen=True)
class Action:
    kind: str
    key_id: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class RotationResult:
    action: Optional[Action]
    completed: bool = False
    distributed: Optional[bool] = None
    new_key_id: Optional[str] = None
    dry_run: bool = False

    def summary(self, user_name):
        return {
            'user': user_name,
            'action': self.action.kind if self.action else None,
            'key_id': self.action.key_id if self.action else None,
            'completed': self.completed,
            'distributed': self.distributed,
            'new_key_id': self.new_key_id,
            'dry_run': self.dry_run,
        }


def sort_newest_first(keys):
    return sorted(keys, key=lambda key: key.created, reverse=True)


def decide_action(keys):
    keys = sort_newest_first(keys)

    if len(keys) > MAX_KEYS:
        return Action(FATAL, reason=f"Unexpected number of access keys ({len(keys)})")
    if len(keys) <= 1:
        return Action(CREATE)

    # The newer key was pushed out when it was created, so only the older one moves.
    older_key = keys[1]
    if older_key.status == ACTIVE:
        return Action(INVALIDATE, older_key.key_id)
    if older_key.status == INACTIVE:
        return Action(DELETE, older_key.key_id)
    return Action(FATAL, older_key.key_id, f"Unexpected status for access key ({older_key.status})")


def wait_until_listable(store, key_id, grace_period, sleep=time.sleep):
    sleep(grace_period)
    for attempt in range(LISTABLE_ATTEMPTS):
        try:
            if any(key.key_id == key_id for key in store.list_keys()):
                return True
        except (ClientError, BotoCoreError) as e:
            logging.warning(f"Could not list keys while waiting for {key_id}: {e}")
        if attempt + 1 < LISTABLE_ATTEMPTS:
            sleep(max(grace_period, 1) * 2 ** attempt)
    logging.warning(f"New key {key_id} is not listable yet, pushing it anyway")
    return False


def distribute(pusher, new_key):
    logging.info("Pushing out the new key to 3rd party services...")
    try:
        pusher.push(new_key.key_id, new_key.secret)
    except Exception as e:
        # The key exists now and a later run will not push it again.
        logging.error(f"Failed to push new key {new_key.key_id}, consumers still hold the previous key: {e}")
        return False
    logging.info(f"Pushed new key {new_key.key_id}")
    return True


def rotate_keys_for_user(store, pusher, grace_period=1, dry_run=False, sleep=time.sleep):
    username = store.user_name
    logging.info(f"Checking keys for user: {username}")
    try:
        keys = sort_newest_first(store.list_keys())
    except (ClientError, BotoCoreError) as e:
        logging.error(f"Failed to list access keys for {username}: {e}")
        return RotationResult(None)

    logging.info(f"IAM user {username} has {len(keys)} keys:")
    for key in keys:
        logging.info(f" - {key.key_id} [{key.status}] {key.created}")

    action = decide_action(keys)
    if action.kind == FATAL:
        logging.critical(f"Refusing to rotate keys for {username}: {action.reason}")
        raise KeyInvariantError(action.reason)

    if dry_run:
        logging.info(f"DRY_RUN: would {action.kind} {action.key_id or 'a new key'} for {username}")
        return RotationResult(action, dry_run=True)

    new_key = None
    try:
        if action.kind == CREATE:
            new_key = store.create_key()
            logging.info(f"Created new key {new_key.key_id}")
        elif action.kind == INVALIDATE:
            logging.info(f"Invalidating older access key {action.key_id}")
            store.update_key_status(action.key_id, INACTIVE)
        else:
            logging.info(f"Deleting older, inactive access key {action.key_id}")
            store.delete_key(action.key_id)
    except (ClientError, BotoCoreError) as e:
        logging.error(f"Failed to {action.kind} access key for {username}: {e}")
        return RotationResult(action)

    result = RotationResult(action, completed=True)
    if new_key is not None:
        wait_until_listable(store, new_key.key_id, grace_period, sleep=sleep)
        result.new_key_id = new_key.key_id
        result.distributed = distribute(pusher, new_key)

    logging.info("Key rotation step complete.")
    return result


def run(config, iam=None, dynamodb=None):
    # Build the pusher first so a bad configuration never reaches IAM.
    pusher = CredentialPusher(get_service(config.service_name), config.service_config)
    store = AccessKeyStore(config.user_name, iam=iam)
    with rotation_lock(config.lock_table, config.user_name, config.lease_seconds, dynamodb=dynamodb):
        return rotate_keys_for_user(store, pusher, config.grace_period, config.dry_run)


def lambda_handler(event, context):
    config = load_config()
    try:
        result = run(config)
    except RotationInProgressError as e:
        logging.warning(f"Skipping rotation: {e}")
        return {'user': config.user_name, 'status': 'skipped'}
    return result.summary(config.user_name)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Run one IAM access key rotation step')
    parser.add_argument('--user', help='IAM user to rotate (defaults to TARGET_USER)')
    parser.add_argument('--dry-run', action='store_true', help='Decide the next step without changing anything')
    parser.add_argument('--grace-period', type=float, help='Seconds to wait between creating and pushing a key')
    parser.add_argument('--print-policy', metavar='USER_ARN',
                        help='Print the execution role policies for USER_ARN and exit')
    parser.add_argument('--lock-table-arn', help='Include lock table permissions in --print-policy')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if args.print_policy:
        print(json.dumps({
            'AssumeRolePolicyDocument': lambda_assume_role_policy(),
            'PolicyDocument': key_rotation_policy(args.print_policy, args.lock_table_arn),
            'ManagedPolicyArns': list(MANAGED_POLICY_ARNS),
        }, indent=2))
        return 0

    try:
        config = load_config(user_name=args.user, dry_run=args.dry_run, grace_period=args.grace_period)
        result = run(config)
    except (ConfigurationError, KeyInvariantError) as e:
        logging.error(f"Error: {e}")
        return 2
    except RotationInProgressError as e:
        logging.warning(f"Skipping rotation: {e}")
        return 1
    except Exception as e:
        logging.error(f"Error: {str(e)}")
        return 1

    print(json.dumps(result.summary(config.user_name)))
    if result.dry_run:
        return 0
    return 0 if result.completed and result.distributed is not False else 1


if __name__ == "__main__":
    sys.exit(main())
