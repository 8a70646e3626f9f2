"""Delete S3 buckets, together with the CloudFormation stacks that own them.

Usage:
    cleanup-buckets "bucket1,bucket2,bucket3"

For each bucket the owning stack (from the aws:cloudformation:stack-name tag)
is deleted first; then every object version, delete marker and pending
multipart upload is removed and the bucket itself is deleted. Buckets and
stacks that could not be deleted are listed at the end.
"""
import logging
import sys
from dataclasses import dataclass, field

import boto3

from aws_housekeeping.cf.delete_stack import delete_cloudformation_stack
from aws_housekeeping.errors import AWS_ERRORS
from aws_housekeeping.logger import default_log_file, finish_log, setup_logger
from aws_housekeeping.s3.bucket import bucket_exists, delete_bucket, get_bucket_region, get_s3_client, get_stack_name_tag

USAGE = 'Usage: cleanup-buckets "bucket1,bucket2,bucket3"'


@dataclass
class CleanupSummary:
    undeleted_buckets: list = field(default_factory=list)
    undeleted_stacks: list = field(default_factory=list)

    @property
    def success(self):
        return not self.undeleted_buckets and not self.undeleted_stacks


def parse_names(argument):
    """Split a comma-separated argument into trimmed, non-empty names."""
    return [name.strip() for name in argument.split(',') if name.strip()]


def cleanup_bucket(bucket_name):
    """Delete one bucket and its owning stack.

    Returns (bucket_deleted, undeleted_stack); undeleted_stack is None unless
    the owning stack had to be left behind.
    """
    region = get_bucket_region(bucket_name)
    if region is None:
        logging.info(f"Bucket {bucket_name} does not exist. Already cleaned up.")
        return True, None

    s3 = get_s3_client(region)
    if not bucket_exists(s3, bucket_name):
        logging.info(f"Bucket {bucket_name} is already gone. Nothing to do.")
        return True, None

    undeleted_stack = None
    stack_name = get_stack_name_tag(s3, bucket_name)
    if stack_name:
        logging.warning(f"Bucket {bucket_name} is managed by CloudFormation stack: {stack_name}")
        cf_client = boto3.client('cloudformation', region_name=region)
        if not delete_cloudformation_stack(cf_client, s3, stack_name, bucket_name):
            undeleted_stack = stack_name
        # the stack usually takes the bucket with it; if not, delete it directly

    return delete_bucket(s3, bucket_name), undeleted_stack


def cleanup_buckets(bucket_names):
    summary = CleanupSummary()

    for bucket_name in bucket_names:
        logging.info("----------------------------------------------")
        logging.info(f"Checking bucket: {bucket_name}")
        try:
            deleted, undeleted_stack = cleanup_bucket(bucket_name)
        except AWS_ERRORS as e:
            logging.error(f"Error processing bucket {bucket_name}: {e}")
            deleted, undeleted_stack = False, None

        if not deleted:
            summary.undeleted_buckets.append(bucket_name)
        if undeleted_stack:
            summary.undeleted_stacks.append(undeleted_stack)

    return summary


def log_summary(summary):
    logging.info("----------------------------------------------")
    logging.info("Cleanup process complete!")
    if summary.undeleted_buckets:
        logging.warning("The following buckets could not be fully deleted:")
        for bucket_name in summary.undeleted_buckets:
            logging.warning(f"   - {bucket_name}")
    if summary.undeleted_stacks:
        logging.warning("The following CloudFormation stacks could not be deleted:")
        for stack_name in summary.undeleted_stacks:
            logging.warning(f"   - {stack_name}")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print(USAGE, file=sys.stderr)
        sys.exit(1)

    log_file = default_log_file()
    setup_logger(log_file)

    try:
        summary = cleanup_buckets(parse_names(argv[0]))
    except Exception as e:
        logging.error(f"Unhandled exception: {e}")
        finish_log(log_file, False)
        sys.exit(1)

    log_summary(summary)
    finish_log(log_file, summary.success)
    sys.exit(0)


if __name__ == "__main__":
    main()
