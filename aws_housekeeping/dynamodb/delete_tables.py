"""Delete DynamoDB tables whose names match a pattern.

Usage:
    delete-dynamodb-tables [MATCH_PATTERN] [SKIP_PATTERN]

MATCH_PATTERN: regex of table names to delete. Default: Integration-PR1
SKIP_PATTERN : regex of table names to keep. Default: Integration-PR459;
               pass "" to skip nothing.

Example:
    delete-dynamodb-tables "Integration-PR4" "Integration-PR459|Integration-PR460"
"""
import argparse
import logging
import re
import sys

import boto3

from aws_housekeeping import config
from aws_housekeeping.errors import AWS_ERRORS, is_not_found
from aws_housekeeping.logger import default_log_file, finish_log, setup_logger

DEFAULT_MATCH_PATTERN = "Integration-PR1"
DEFAULT_SKIP_PATTERN = "Integration-PR459"


def list_matching_tables(dynamodb_client, match_pattern, skip_pattern=None):
    """List table names matching match_pattern and not matching skip_pattern."""
    tables = []
    paginator = dynamodb_client.get_paginator('list_tables')
    for page in paginator.paginate():
        for table_name in page['TableNames']:
            if not re.search(match_pattern, table_name):
                continue
            if skip_pattern and re.search(skip_pattern, table_name):
                continue
            tables.append(table_name)
    return tables


def delete_table(dynamodb_client, table_name):
    """Disable deletion protection and delete the table. Returns False on failure."""
    logging.info(f"Deleting table: {table_name}")

    try:
        dynamodb_client.update_table(TableName=table_name, DeletionProtectionEnabled=False)
    except AWS_ERRORS as e:
        # already disabled, or the table is busy; the delete below decides
        logging.debug(f"Could not update deletion protection on {table_name}: {e}")

    try:
        dynamodb_client.delete_table(TableName=table_name)
    except AWS_ERRORS as e:
        if is_not_found(e):
            logging.info(f"Table {table_name} not found. It may have already been deleted.")
            return True
        logging.error(f"Error deleting table {table_name}: {e}")
        return False

    logging.info(f"Table deleted: {table_name}")
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(description="Delete DynamoDB tables whose names match a pattern.")
    parser.add_argument("match_pattern", nargs='?', default=DEFAULT_MATCH_PATTERN, help="Regex of table names to delete")
    parser.add_argument("skip_pattern", nargs='?', default=DEFAULT_SKIP_PATTERN, help="Regex of table names to skip; empty skips nothing")
    parser.add_argument("--log-file", "-l", help="Log file to store the output")
    args = parser.parse_args(argv)

    log_file = args.log_file or default_log_file()
    setup_logger(log_file)

    try:
        dynamodb_client = boto3.client('dynamodb', region_name=config.aws_region())
        tables = list_matching_tables(dynamodb_client, args.match_pattern, args.skip_pattern)
        logging.info(f"Found {len(tables)} tables matching '{args.match_pattern}'")

        failed = [table_name for table_name in tables if not delete_table(dynamodb_client, table_name)]
    except Exception as e:
        logging.error(f"Unhandled exception: {e}")
        finish_log(log_file, False)
        sys.exit(1)

    for table_name in failed:
        logging.warning(f"   - failed: {table_name}")
    logging.info("All matching tables processed.")
    finish_log(log_file, not failed)
    sys.exit(0)


if __name__ == "__main__":
    main()
