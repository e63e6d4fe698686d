# lambdas/slowlog_check/ssm.py
import os

import boto3
from botocore.exceptions import ClientError


def hydrate_environment(ssm_path: str, ssm_client=None) -> list[str]:
    """
    Copies every parameter under /<ssm_path>/ into os.environ, keyed by the
    last path segment (e.g. /slowlog/DATADOG_API_KEY -> DATADOG_API_KEY).

    Returns:
        The names that were set. Values are never printed.
    """
    client = ssm_client or boto3.client('ssm')
    path = f"/{ssm_path.strip('/')}/"
    names = []

    try:
        paginator = client.get_paginator('get_parameters_by_path')
        for page in paginator.paginate(Path=path, Recursive=True, WithDecryption=True):
            for parameter in page.get('Parameters', []):
                name = os.path.basename(parameter['Name'])
                print(f"Setting parameter: {name} from SSM.")
                os.environ[name] = parameter['Value']
                names.append(name)
    except ClientError as e:
        print(f"❌ Could not read SSM parameters under '{path}': {e.response['Error']['Message']}")
        raise

    return names
