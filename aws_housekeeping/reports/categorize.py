"""Categorize the non-compliant buckets of one account in the AWS Config report.

Usage:
    categorize-buckets <accountId>

Reads INPUT_EXCEL (the sheet written by config-report), assigns a category
to every bucket of the given account and writes the whole sheet, with
"Bucket Name" and "Category" columns added, to OUTPUT_EXCEL.
"""
import logging
import sys
from datetime import datetime, timedelta, timezone

import boto3

from aws_housekeeping import config
from aws_housekeeping.errors import AWS_ERRORS, error_code
from aws_housekeeping.reports.excel import normalize_account_id, read_sheet, write_workbook

REPORT_SHEET = "AWS_Config_Report"
BUCKET_ARN_PREFIX = "AWS::S3::Bucket/"
RECENT_DAYS = 90

NO_LONGER_USED = "No Longer Used (Cleanup)"
UNSURE = "Unsure (Review)"
MANUAL_REVIEW = "Manual Review Required"

OUTPUT_COLUMNS = [
    ("resourceId", "resourceId", None),
    ("AccountId", "AccountId", None),
    ("Account Name", "AccountName", None),
    ("configuration.targetResourceType", "targetResourceType", None),
    ("configuration.complianceType", "complianceType", None),
    ("Non_Compliant_Rules", "nonCompliantRules", None),
    ("Bucket Name", "BucketName", None),
    ("Category", "Category", None),
]


def read_report_rows(input_path):
    rows = []
    for values in read_sheet(input_path, REPORT_SHEET):
        values = list(values) + [None] * (6 - len(values))
        rows.append({
            'resourceId': values[0],
            'AccountId': normalize_account_id(values[1]) or (str(values[1]) if values[1] is not None else None),
            'AccountName': str(values[2]) if values[2] is not None else None,
            'targetResourceType': values[3],
            'complianceType': values[4],
            'nonCompliantRules': values[5],
            'BucketName': "",
            'Category': "",
        })
    return rows


def bucket_name_from_resource_id(resource_id):
    if not resource_id:
        return "UNKNOWN"
    return str(resource_id).replace(BUCKET_ARN_PREFIX, "")


def has_expiring_lifecycle(s3, bucket_name):
    """True if the bucket has no lifecycle configuration or one that expires objects."""
    try:
        rules = s3.get_bucket_lifecycle_configuration(Bucket=bucket_name).get('Rules', [])
    except AWS_ERRORS as e:
        if error_code(e) == 'NoSuchLifecycleConfiguration':
            return True
        raise
    return any('Expiration' in rule for rule in rules)


def is_empty(s3, bucket_name):
    return s3.list_objects_v2(Bucket=bucket_name, MaxKeys=1).get('KeyCount', 0) == 0


def has_recent_objects(s3, bucket_name, now=None):
    """True if any object was modified in the last RECENT_DAYS days."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=RECENT_DAYS)
    paginator = s3.get_paginator('list_objects_v2')
    for page in paginator.paginate(Bucket=bucket_name):
        for obj in page.get('Contents', []):
            if obj['LastModified'] >= cutoff:
                return True
    return False


def categorize_bucket(s3, bucket_name, now=None):
    logging.info(f"Processing bucket: {bucket_name}")
    try:
        if has_expiring_lifecycle(s3, bucket_name) or is_empty(s3, bucket_name):
            logging.info(f"{bucket_name}: Categorized as '{NO_LONGER_USED}' (Auto-deletion or Empty)")
            return NO_LONGER_USED

        if has_recent_objects(s3, bucket_name, now):
            logging.info(f"{bucket_name}: Categorized as '{UNSURE}' (Recent objects found)")
            return UNSURE
    except AWS_ERRORS as e:
        logging.warning(f"{bucket_name}: could not inspect bucket: {e}")

    logging.info(f"{bucket_name}: Categorized as '{MANUAL_REVIEW}'")
    return MANUAL_REVIEW


def categorize_account(s3, rows, account_id, now=None):
    """Fill BucketName and Category for the rows of one account. Returns those rows."""
    account_rows = [row for row in rows if row['AccountId'] == account_id]
    for row in account_rows:
        row['BucketName'] = bucket_name_from_resource_id(row['resourceId'])
        row['Category'] = categorize_bucket(s3, row['BucketName'], now)
    return account_rows


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    if not argv or not argv[0].strip():
        logging.error("No AccountId provided. Usage: categorize-buckets <accountId>")
        sys.exit(1)
    account_id = normalize_account_id(argv[0]) or argv[0].strip()

    try:
        input_path = config.input_excel()
        logging.info(f"Loading Excel file: {input_path}")
        rows = read_report_rows(input_path)

        s3 = boto3.client('s3', region_name=config.aws_region())
        if not categorize_account(s3, rows, account_id):
            logging.info(f"No records found for AccountId: {account_id}")
            return

        output_path = config.output_excel()
        write_workbook(output_path, {REPORT_SHEET: (OUTPUT_COLUMNS, rows)})
        logging.info(f"Processing completed. Categorized data saved in {output_path}")
    except Exception as e:
        logging.error(f"Failed to categorize buckets: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
