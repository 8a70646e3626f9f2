"""Copy inactive integration secrets to a "-delete-me" name and expire the originals.

Usage:
    rename-secrets <secretNames> [days]

A secret qualifies when it has not been read for 180 days (or was never
read) and its name matches the integration credentials pattern. Its value
is copied into a new secret named "<name>-delete-me", and the original is
scheduled for deletion with a recovery window of `days` (default 7).
"""
import logging
import os
import re
import sys
from datetime import datetime, timezone

import boto3

from aws_housekeeping import config
from aws_housekeeping.errors import is_not_found
from aws_housekeeping.logger import default_log_file, finish_log, setup_logger
from aws_housekeeping.secrets.common import call_with_retry, parse_arguments, process_concurrently

INACTIVE_DAYS = 180
RENAME_SUFFIX = "-delete-me"
SECRET_NAME_PATTERN = r"^integrations/[0-9a-fA-F-]+/netsuite/[0-9A-Za-z]+/credentials$"

RENAMED = "renamed"
SKIPPED = "skipped"
FAILED = "failed"


def secret_name_pattern():
    return re.compile(os.environ.get("SECRET_NAME_PATTERN") or SECRET_NAME_PATTERN)


def days_since(timestamp, now=None):
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return (now - timestamp).total_seconds() / (3600 * 24)


def read_secret_string(secrets_client, secret_name):
    """Return the current SecretString, or an empty string when there is none."""
    try:
        result = call_with_retry(lambda: secrets_client.get_secret_value(SecretId=secret_name))
    except Exception as e:
        if is_not_found(e):
            logging.info(f'Secret "{secret_name}" value not found (ResourceNotFoundException). Proceeding with empty value.')
            return ""
        raise

    secret_string = result.get('SecretString') or ""
    if not secret_string:
        logging.info(f'Secret "{secret_name}" does not have a SecretString. Proceeding with empty value.')
    return secret_string


def mark_secret_for_deletion(secret_name, days, secrets_client, now=None):
    """Rename one secret and schedule the original for deletion. Never raises."""
    try:
        logging.info(f'Describing secret "{secret_name}"...')
        description = call_with_retry(lambda: secrets_client.describe_secret(SecretId=secret_name))

        last_accessed = description.get('LastAccessedDate')
        if last_accessed:
            days_since_access = days_since(last_accessed, now)
            if days_since_access < INACTIVE_DAYS:
                logging.info(f'Secret "{secret_name}" was last accessed {days_since_access:.1f} days ago. Skipping.')
                return SKIPPED
        else:
            logging.info(f'Secret "{secret_name}" does not have a LastAccessedDate. Proceeding with renaming.')

        if not secret_name_pattern().match(secret_name):
            logging.info(f'Secret "{secret_name}" does not match the expected format. Skipping.')
            return SKIPPED

        new_secret_name = f"{secret_name}{RENAME_SUFFIX}"
        logging.info(f'Secret "{secret_name}" qualifies for renaming. New name will be "{new_secret_name}".')

        logging.info(f'Retrieving secret value for "{secret_name}"...')
        secret_string = read_secret_string(secrets_client, secret_name)

        logging.info(f'Creating new secret with name "{new_secret_name}"...')
        call_with_retry(lambda: secrets_client.create_secret(
            Name=new_secret_name,
            SecretString=secret_string,
            Description=f"Renamed from {secret_name} for potential deletion after inactivity.",
        ))
        logging.info(f'Successfully created new secret "{new_secret_name}".')

        logging.info(f'Scheduling deletion for original secret "{secret_name}" in {days} day(s)...')
        call_with_retry(lambda: secrets_client.delete_secret(SecretId=secret_name, RecoveryWindowInDays=days))
        logging.info(f'Successfully scheduled deletion for original secret "{secret_name}".')
        return RENAMED
    except Exception as e:
        if is_not_found(e):
            logging.info(f'Secret "{secret_name}" no longer exists. Nothing to do.')
            return SKIPPED
        logging.error(f'Failed to process secret "{secret_name}": {e}')
        return FAILED


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    secret_names, days = parse_arguments(argv, "rename-secrets")

    log_file = default_log_file()
    setup_logger(log_file)

    try:
        secrets_client = boto3.client('secretsmanager', region_name=config.aws_region())
        outcomes = process_concurrently(mark_secret_for_deletion, secret_names, days, secrets_client)
    except Exception as e:
        logging.error(f"Unhandled exception: {e}")
        finish_log(log_file, False)
        sys.exit(1)

    failed = [name for name, outcome in outcomes.items() if outcome == FAILED]
    renamed = [name for name, outcome in outcomes.items() if outcome == RENAMED]
    logging.info(f"Renamed {len(renamed)} secret(s), skipped {len(outcomes) - len(renamed) - len(failed)}, failed {len(failed)}.")
    for secret_name in failed:
        logging.warning(f"   - failed: {secret_name}")
    logging.info("Done processing secrets for renaming and scheduling deletion.")

    finish_log(log_file, not failed)
    sys.exit(0)


if __name__ == "__main__":
    main()
