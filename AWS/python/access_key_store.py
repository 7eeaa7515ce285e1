import boto3
from dataclasses import dataclass
from datetime import datetime

ACTIVE = 'Active'
INACTIVE = 'Inactive'


@dataclass(frozen=True)
class AccessKey:
    key_id: str
    created: datetime
    status: str


@dataclass(frozen=True)
class NewAccessKey:
    key_id: str
    secret: str
    created: datetime
    status: str = ACTIVE


class AccessKeyStore:
    """Access key operations for a single IAM user.

    Thin translation of the IAM API into AccessKey records. Errors from
    boto3 propagate to the caller; nothing here retries.
    """

    def __init__(self, user_name, iam=None):
        self.user_name = user_name
        self.iam = iam or boto3.client('iam')

    def list_keys(self):
        paginator = self.iam.get_paginator('list_access_keys')
        keys = []
        for response in paginator.paginate(UserName=self.user_name):
            for meta in response['AccessKeyMetadata']:
                keys.append(AccessKey(meta['AccessKeyId'], meta['CreateDate'], meta['Status']))
        return keys

    def create_key(self):
        new_key = self.iam.create_access_key(UserName=self.user_name)['AccessKey']
        return NewAccessKey(
            key_id=new_key['AccessKeyId'],
            secret=new_key['SecretAccessKey'],
            created=new_key['CreateDate'],
            status=new_key.get('Status', ACTIVE),
        )

    def update_key_status(self, key_id, status):
        self.iam.update_access_key(UserName=self.user_name, AccessKeyId=key_id, Status=status)

    def delete_key(self, key_id):
        self.iam.delete_access_key(UserName=self.user_name, AccessKeyId=key_id)
