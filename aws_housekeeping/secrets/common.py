import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor

from aws_housekeeping.errors import is_throttling

DEFAULT_RECOVERY_DAYS = 7


def call_with_retry(operation, retries=3, delay=1):
    """Call `operation`, retrying throttled calls after a fixed delay."""
    for attempt in range(retries):
        try:
            return operation()
        except Exception as e:
            if is_throttling(e) and attempt < retries - 1:
                logging.warning(f"Throttling encountered, waiting {delay}s before retrying (attempt {attempt + 1}/{retries})...")
                time.sleep(delay)
            else:
                raise


def usage(program):
    return f"""
Usage:
  {program} <secretNames> [days]

Where:
  <secretNames>  Comma-separated list of AWS Secrets Manager secret names or ARNs
  [days]         (Optional) Number of days before permanent deletion (default is {DEFAULT_RECOVERY_DAYS})

Examples:
  {program} "sm1,sm2,sm3" 10
  {program} "sm1,sm2,sm3"
"""


def parse_arguments(argv, program):
    """Return (secret_names, days); prints usage and exits 1 without secret names."""
    if not argv or not argv[0].strip():
        print(usage(program))
        sys.exit(1)

    secret_names = [name.strip() for name in argv[0].split(',') if name.strip()]

    # missing, non-numeric or zero falls back to the default window
    days = DEFAULT_RECOVERY_DAYS
    if len(argv) > 1:
        try:
            days = int(argv[1]) or DEFAULT_RECOVERY_DAYS
        except ValueError:
            days = DEFAULT_RECOVERY_DAYS

    return secret_names, days


def process_concurrently(func, secret_names, *args):
    """Run func(secret_name, *args) for every secret at once and return {secret_name: result}."""
    secret_names = list(dict.fromkeys(secret_names))
    if not secret_names:
        return {}
    with ThreadPoolExecutor(max_workers=len(secret_names)) as executor:
        futures = {name: executor.submit(func, name, *args) for name in secret_names}
        return {name: future.result() for name, future in futures.items()}
