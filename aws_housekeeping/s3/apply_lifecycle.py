"""Delete buckets, falling back to an expire-everything lifecycle rule.

Usage:
    apply-lifecycle "bucket1,bucket2,bucket3"

Each existing bucket gets up to 30 seconds of delete attempts. A bucket that
survives gets a lifecycle configuration that expires all of its content
after one day, so a later run can delete it.
"""
import logging
import sys
import time

from aws_housekeeping.errors import AWS_ERRORS
from aws_housekeeping.logger import default_log_file, finish_log, setup_logger
from aws_housekeeping.s3.bucket import bucket_exists, delete_bucket, get_bucket_region, get_s3_client
from aws_housekeeping.s3.cleanup_buckets import parse_names

USAGE = 'Usage: apply-lifecycle "bucket1,bucket2,bucket3"'

DELETE_TIMEOUT = 30
RETRY_DELAY = 3

# ExpiredObjectDeleteMarker cannot share an Expiration block with Days
EXPIRE_EVERYTHING = {
    'Rules': [
        {
            'ID': 'DeleteObjectsAfter1Day',
            'Status': 'Enabled',
            'Filter': {'Prefix': ''},
            'Expiration': {'Days': 1},
            'NoncurrentVersionExpiration': {'NoncurrentDays': 1},
            'AbortIncompleteMultipartUpload': {'DaysAfterInitiation': 1},
        },
        {
            'ID': 'DeleteExpiredObjectDeleteMarkers',
            'Status': 'Enabled',
            'Filter': {'Prefix': ''},
            'Expiration': {'ExpiredObjectDeleteMarker': True},
        },
    ]
}


def delete_with_timeout(s3, bucket_name, timeout=DELETE_TIMEOUT, delay=RETRY_DELAY):
    """Keep trying to delete the bucket until it is gone or `timeout` seconds have passed."""
    start_time = time.monotonic()
    while True:
        if delete_bucket(s3, bucket_name):
            return True
        if time.monotonic() - start_time >= timeout:
            logging.warning(f"Timed out after {timeout}s. Bucket {bucket_name} is not fully deleted.")
            return False
        logging.warning(f"Bucket {bucket_name} not yet deleted. Retrying in {delay} seconds...")
        time.sleep(delay)


def apply_lifecycle_policy(s3, bucket_name):
    logging.info(f"Applying lifecycle policy to bucket: {bucket_name}")
    try:
        s3.put_bucket_lifecycle_configuration(Bucket=bucket_name, LifecycleConfiguration=EXPIRE_EVERYTHING)
    except AWS_ERRORS as e:
        logging.error(f"Failed to apply lifecycle policy to {bucket_name}: {e}")
        return False
    logging.info(f"Lifecycle policy applied successfully to {bucket_name}.")
    return True


def process_bucket(bucket_name):
    """Returns False only when the bucket still exists and has no lifecycle fallback."""
    region = get_bucket_region(bucket_name)
    s3 = get_s3_client(region) if region else None
    if s3 is None or not bucket_exists(s3, bucket_name):
        logging.warning(f"Bucket {bucket_name} does not exist or is inaccessible. Skipping...")
        return True

    logging.info(f"Attempting to delete bucket {bucket_name} for up to {DELETE_TIMEOUT}s...")
    if delete_with_timeout(s3, bucket_name):
        logging.info(f"Bucket {bucket_name} deleted successfully.")
        return True

    logging.warning(f"Bucket {bucket_name} not fully deleted after {DELETE_TIMEOUT} seconds. Applying lifecycle policy...")
    return apply_lifecycle_policy(s3, bucket_name)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1 or not argv[0].strip():
        print(USAGE, file=sys.stderr)
        sys.exit(1)

    bucket_names = parse_names(argv[0])
    if not bucket_names:
        print("No valid buckets provided.", file=sys.stderr)
        sys.exit(1)

    log_file = default_log_file()
    setup_logger(log_file)

    failed = []
    try:
        for bucket_name in bucket_names:
            logging.info(f"Checking bucket existence: {bucket_name}")
            try:
                if not process_bucket(bucket_name):
                    failed.append(bucket_name)
            except AWS_ERRORS as e:
                logging.error(f"Error processing bucket {bucket_name}: {e}")
                failed.append(bucket_name)
            logging.info("----------------------------------------------")
    except Exception as e:
        logging.error(f"Unhandled exception: {e}")
        finish_log(log_file, False)
        sys.exit(1)

    if failed:
        logging.warning("The following buckets exist but were NOT deleted due to errors:")
        for bucket_name in failed:
            logging.warning(f"   - {bucket_name}")
    else:
        logging.info("All existing buckets were deleted or set to expire.")

    logging.info("Cleanup process complete!")
    finish_log(log_file, not failed)
    sys.exit(0)


if __name__ == "__main__":
    main()
