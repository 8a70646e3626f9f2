"""Schedule secrets for deletion, deleting the CloudFormation stacks that created them.

Usage:
    schedule-secret-deletion <secretNames> [days]
"""
import logging
import sys
import time

import boto3

from aws_housekeeping import config
from aws_housekeeping.errors import AWS_ERRORS, is_not_found
from aws_housekeeping.logger import default_log_file, finish_log, setup_logger
from aws_housekeeping.secrets.common import parse_arguments, process_concurrently

STACK_NAME_TAG = 'aws:cloudformation:stack-name'
# pause after each deletion to stay under the Secrets Manager rate limit
THROTTLE_PAUSE = 1


def stack_name_from_tags(tags):
    for tag in tags or []:
        if tag.get('Key') == STACK_NAME_TAG and tag.get('Value'):
            return tag['Value']
    return None


def schedule_deletion(secret_name, days, secrets_client, cf_client):
    """Delete the secret's owning stack (if tagged) and schedule the secret for deletion."""
    try:
        logging.info(f'Describing secret "{secret_name}" to check for CloudFormation tags...')
        description = secrets_client.describe_secret(SecretId=secret_name)

        stack_name = stack_name_from_tags(description.get('Tags'))
        if stack_name:
            logging.info(f'Found CloudFormation stack name: "{stack_name}". Deleting stack...')
            try:
                cf_client.delete_stack(StackName=stack_name)
                logging.info(f'Successfully initiated deletion of CloudFormation stack "{stack_name}".')
            except AWS_ERRORS as e:
                logging.error(f'Failed to delete CloudFormation stack "{stack_name}". Continuing with secret deletion: {e}')
        else:
            logging.info(f'No CloudFormation stack-name tag found for "{secret_name}".')

        logging.info(f'Scheduling deletion for secret "{secret_name}" in {days} day(s)...')
        secrets_client.delete_secret(SecretId=secret_name, RecoveryWindowInDays=days)
        time.sleep(THROTTLE_PAUSE)
        logging.info(f'Successfully scheduled deletion for "{secret_name}".')
        return True
    except AWS_ERRORS as e:
        if is_not_found(e):
            logging.info(f'Secret "{secret_name}" no longer exists. Nothing to do.')
            return True
        logging.error(f'Failed to process secret "{secret_name}": {e}')
        return False


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    secret_names, days = parse_arguments(argv, "schedule-secret-deletion")

    log_file = default_log_file()
    setup_logger(log_file)

    try:
        region = config.aws_region()
        secrets_client = boto3.client('secretsmanager', region_name=region)
        cf_client = boto3.client('cloudformation', region_name=region)
        results = process_concurrently(schedule_deletion, secret_names, days, secrets_client, cf_client)
    except Exception as e:
        logging.error(f"Unhandled exception: {e}")
        finish_log(log_file, False)
        sys.exit(1)

    failed = [name for name, scheduled in results.items() if not scheduled]
    for secret_name in failed:
        logging.warning(f"   - failed: {secret_name}")
    logging.info("Done scheduling secrets for deletion (and any associated CloudFormation stacks).")

    finish_log(log_file, not failed)
    sys.exit(0)


if __name__ == "__main__":
    main()
