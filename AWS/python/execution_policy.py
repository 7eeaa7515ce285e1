KEY_ROTATION_ACTIONS = [
    "iam:CreateAccessKey",
    "iam:DeleteAccessKey",
    "iam:ListAccessKeys",
    "iam:UpdateAccessKey",
]

# Lets the function write its logs to CloudWatch.
MANAGED_POLICY_ARNS = [
    "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole",
]

LOCK_ACTIONS = [
    "dynamodb:PutItem",
    "dynamodb:DeleteItem",
]


def key_rotation_policy(user_arn, lock_table_arn=None):
    statements = [{
        "Effect": "Allow",
        "Action": list(KEY_ROTATION_ACTIONS),
        "Resource": user_arn,
    }]
    if lock_table_arn:
        statements.append({
            "Effect": "Allow",
            "Action": list(LOCK_ACTIONS),
            "Resource": lock_table_arn,
        })
    return {"Version": "2012-10-17", "Statement": statements}


def lambda_assume_role_policy():
    return {
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Service": "lambda.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }],
    }
