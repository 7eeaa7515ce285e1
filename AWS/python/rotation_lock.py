import logging
import time
import uuid
from contextlib import contextmanager

import boto3
from botocore.exceptions import ClientError

from rotation_errors import RotationInProgressError


class RotationLock:
    """Lease on a DynamoDB item keyed by principal.

    The table needs a string partition key named ``principal``. A lease
    that outlives its holder expires after ``lease_seconds``.
    """

    def __init__(self, table_name, principal, lease_seconds, dynamodb=None):
        self.table_name = table_name
        self.principal = principal
        self.lease_seconds = int(lease_seconds)
        self.owner = uuid.uuid4().hex
        self.dynamodb = dynamodb or boto3.client('dynamodb')

    def acquire(self):
        now = int(time.time())
        try:
            self.dynamodb.put_item(
                TableName=self.table_name,
                Item={
                    'principal': {'S': self.principal},
                    'owner': {'S': self.owner},
                    'expires_at': {'N': str(now + self.lease_seconds)},
                },
                ConditionExpression='attribute_not_exists(principal) OR expires_at < :now',
                ExpressionAttributeValues={':now': {'N': str(now)}},
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise RotationInProgressError(
                    f"Another rotation holds the lock for {self.principal}") from e
            raise
        logging.info(f"Acquired rotation lock for {self.principal} ({self.lease_seconds}s lease)")

    def release(self):
        try:
            self.dynamodb.delete_item(
                TableName=self.table_name,
                Key={'principal': {'S': self.principal}},
                ConditionExpression='#owner = :owner',
                ExpressionAttributeNames={'#owner': 'owner'},
                ExpressionAttributeValues={':owner': {'S': self.owner}},
            )
        except ClientError as e:
            if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                raise
            logging.warning(f"Rotation lock for {self.principal} was taken over before release")


@contextmanager
def rotation_lock(table_name, principal, lease_seconds, dynamodb=None):
    if not table_name:
        yield None
        return
    lock = RotationLock(table_name, principal, lease_seconds, dynamodb=dynamodb)
    lock.acquire()
    try:
        yield lock
    finally:
        try:
            lock.release()
        except ClientError as e:
            logging.error(f"Could not release rotation lock for {principal}, it expires with its lease: {e}")
