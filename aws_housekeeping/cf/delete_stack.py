import logging

from aws_housekeeping.errors import AWS_ERRORS, is_export_in_use, is_not_found
from aws_housekeeping.s3.bucket_content import clear_bucket_contents

# stack_delete_complete polls every WAIT_DELAY seconds; 15 * 20 gives about five minutes
WAIT_DELAY = 15
WAIT_MAX_ATTEMPTS = 20


def describe_stack(cf_client, stack_name):
    """Return the stack description, or None if the stack does not exist."""
    try:
        response = cf_client.describe_stacks(StackName=stack_name)
    except AWS_ERRORS as e:
        if is_not_found(e):
            return None
        raise
    stacks = response.get('Stacks', [])
    return stacks[0] if stacks else None


def disable_termination_protection(cf_client, stack_name):
    """Disable termination protection. Returns False if it could not be disabled."""
    logging.warning(f"Termination Protection is enabled for stack: {stack_name}. Disabling now...")
    try:
        cf_client.update_termination_protection(StackName=stack_name, EnableTerminationProtection=False)
    except AWS_ERRORS as e:
        logging.error(f"Failed to disable Termination Protection for stack {stack_name}. Skipping deletion: {e}")
        return False
    logging.info(f"Termination Protection disabled for stack: {stack_name}.")
    return True


def delete_and_wait(cf_client, stack_name):
    """Delete the stack and wait for it to be gone. Returns True on success."""
    try:
        cf_client.delete_stack(StackName=stack_name)
        logging.info(f"Waiting for CloudFormation stack {stack_name} to be deleted...")
        waiter = cf_client.get_waiter('stack_delete_complete')
        waiter.wait(StackName=stack_name, WaiterConfig={'Delay': WAIT_DELAY, 'MaxAttempts': WAIT_MAX_ATTEMPTS})
    except AWS_ERRORS as e:
        logging.error(f"Error deleting stack {stack_name}: {e}")
        return False
    logging.info(f"CloudFormation stack {stack_name} deleted successfully.")
    return True


def latest_event_reason(cf_client, stack_name):
    try:
        events = cf_client.describe_stack_events(StackName=stack_name).get('StackEvents', [])
    except AWS_ERRORS as e:
        logging.warning(f"Could not read stack events for {stack_name}: {e}")
        return ""
    if not events:
        return ""
    return events[0].get('ResourceStatusReason', '') or ""


def delete_cloudformation_stack(cf_client, s3, stack_name, bucket_name):
    """Delete the stack that owns a bucket, emptying the bucket and retrying once on failure.

    Returns True if the stack no longer exists, False if it has to be reported
    as not deleted.
    """
    logging.info(f"Attempting to delete CloudFormation stack: {stack_name}")

    try:
        stack = describe_stack(cf_client, stack_name)
    except AWS_ERRORS as e:
        logging.error(f"Stack {stack_name} is inaccessible: {e}")
        return False

    if stack is None:
        logging.warning(f"CloudFormation stack {stack_name} does not exist or was already deleted.")
        return True

    protected = bool(stack.get('EnableTerminationProtection'))
    logging.info(f"Termination protection status: {protected}")
    if protected and not disable_termination_protection(cf_client, stack_name):
        return False

    logging.info(f"Deleting CloudFormation stack: {stack_name}")
    if delete_and_wait(cf_client, stack_name):
        return True

    logging.error("Stack deletion failed on first attempt. Will clear bucket contents and retry...")
    clear_bucket_contents(s3, bucket_name)

    logging.info(f"Retrying CloudFormation stack deletion: {stack_name}")
    if delete_and_wait(cf_client, stack_name):
        return True

    logging.error(f"Final attempt to delete CloudFormation stack {stack_name} failed.")
    if is_export_in_use(latest_event_reason(cf_client, stack_name)):
        logging.error(f"Delete canceled for {stack_name} due to an export in use by another stack.")
    return False
