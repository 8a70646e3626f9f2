import logging

import boto3

from aws_housekeeping import config
from aws_housekeeping.errors import AWS_ERRORS, is_not_found
from aws_housekeeping.s3.bucket_content import clear_bucket_contents

STACK_NAME_TAG = 'aws:cloudformation:stack-name'

# legacy location constraints that do not match a region name
LEGACY_LOCATIONS = {'EU': 'eu-west-1'}


def get_bucket_region(bucket_name):
    """Return the bucket's region, or None if the bucket does not exist."""
    # any region can answer GetBucketLocation
    s3 = boto3.client('s3', region_name=config.aws_region())
    try:
        response = s3.get_bucket_location(Bucket=bucket_name)
    except AWS_ERRORS as e:
        if is_not_found(e):
            logging.info(f"Bucket {bucket_name} does not exist (NoSuchBucket). Skipping region lookup.")
            return None
        raise
    location = response.get('LocationConstraint') or 'us-east-1'
    return LEGACY_LOCATIONS.get(location, location)


def get_s3_client(region):
    return boto3.client('s3', region_name=region)


def bucket_exists(s3, bucket_name):
    """Check if a bucket exists. Errors other than not-found are raised."""
    try:
        s3.head_bucket(Bucket=bucket_name)
        logging.info(f"Bucket {bucket_name} exists and is accessible.")
        return True
    except AWS_ERRORS as e:
        if is_not_found(e):
            return False
        raise


def get_stack_name_tag(s3, bucket_name):
    """Return the CloudFormation stack that owns the bucket, if it is tagged with one."""
    try:
        response = s3.get_bucket_tagging(Bucket=bucket_name)
    except AWS_ERRORS:
        # NoSuchTagSet or no permission to read tags
        return None
    for tag in response.get('TagSet', []):
        if tag.get('Key') == STACK_NAME_TAG and tag.get('Value'):
            return tag['Value']
    return None


def delete_bucket(s3, bucket_name):
    """Empty the bucket and delete it. Returns True if the bucket is gone afterwards."""
    try:
        if not bucket_exists(s3, bucket_name):
            logging.info(f"Bucket {bucket_name} is already gone. Nothing to do.")
            return True
    except AWS_ERRORS as e:
        logging.error(f"Bucket {bucket_name} is inaccessible: {e}")
        return False

    logging.info(f"Emptying bucket: {bucket_name}")
    clear_bucket_contents(s3, bucket_name)

    try:
        logging.info(f"Attempting to delete bucket: {bucket_name}")
        s3.delete_bucket(Bucket=bucket_name)
        logging.info(f"Successfully deleted bucket: {bucket_name}")
        return True
    except AWS_ERRORS as e:
        if is_not_found(e):
            logging.info(f"Bucket {bucket_name} disappeared before deletion.")
            return True
        logging.error(f"Failed to delete bucket {bucket_name}: {e}")
        return False
