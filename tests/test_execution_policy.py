from execution_policy import KEY_ROTATION_ACTIONS, MANAGED_POLICY_ARNS, key_rotation_policy, lambda_assume_role_policy

USER_ARN = 'arn:aws:iam::123456789012:user/bots/cicd-bot'
TABLE_ARN = 'arn:aws:dynamodb:us-east-1:123456789012:table/key-rotation-locks'


def test_key_rotation_policy_is_scoped_to_user():
    policy = key_rotation_policy(USER_ARN)

    assert policy['Version'] == '2012-10-17'
    assert policy['Statement'] == [{'Effect': 'Allow', 'Action': KEY_ROTATION_ACTIONS, 'Resource': USER_ARN}]


def test_lock_table_adds_statement():
    statements = key_rotation_policy(USER_ARN, TABLE_ARN)['Statement']

    assert len(statements) == 2
    assert statements[1]['Resource'] == TABLE_ARN
    assert set(statements[1]['Action']) == {'dynamodb:PutItem', 'dynamodb:DeleteItem'}


def test_lambda_can_assume_role():
    statement = lambda_assume_role_policy()['Statement'][0]
    assert statement['Principal'] == {'Service': 'lambda.amazonaws.com'}
    assert statement['Action'] == 'sts:AssumeRole'


def test_managed_policies_allow_logging():
    assert 'arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole' in MANAGED_POLICY_ARNS
