"""Delete regional WAF web ACLs whose description contains a pattern.

Usage:
    delete-waf-web-acls [PATTERN]     (default: Integration-PR)
"""
import argparse
import logging
import sys

import boto3

from aws_housekeeping import config
from aws_housekeeping.errors import AWS_ERRORS, is_not_found
from aws_housekeeping.logger import default_log_file, finish_log, setup_logger

DEFAULT_PATTERN = "Integration-PR"
SCOPE = "REGIONAL"


def list_web_acls(waf_client, pattern, scope=SCOPE):
    """List (name, id) of web ACLs whose description contains `pattern`."""
    matches = []
    params = {'Scope': scope}
    while True:
        response = waf_client.list_web_acls(**params)
        for acl in response.get('WebACLs', []):
            if pattern in (acl.get('Description') or ''):
                matches.append((acl['Name'], acl['Id']))
        # the last page can still carry a NextMarker
        if not response.get('WebACLs') or not response.get('NextMarker'):
            break
        params['NextMarker'] = response['NextMarker']
    return matches


def delete_web_acl(waf_client, name, acl_id, scope=SCOPE):
    """Delete one web ACL using its current lock token. Returns False on failure."""
    try:
        lock_token = waf_client.get_web_acl(Name=name, Id=acl_id, Scope=scope)['LockToken']
        logging.info(f"Deleting Web ACL: {name} (Id: {acl_id}, LockToken: {lock_token})")
        waf_client.delete_web_acl(Name=name, Id=acl_id, Scope=scope, LockToken=lock_token)
    except AWS_ERRORS as e:
        if is_not_found(e):
            logging.info(f"Web ACL {name} not found. It may have already been deleted.")
            return True
        logging.error(f"Error deleting Web ACL {name}: {e}")
        return False
    logging.info(f"Deleted Web ACL: {name}")
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(description="Delete regional WAF web ACLs whose description contains a pattern.")
    parser.add_argument("pattern", nargs='?', default=DEFAULT_PATTERN, help="Substring to look for in the web ACL description")
    parser.add_argument("--log-file", "-l", help="Log file to store the output")
    args = parser.parse_args(argv)

    log_file = args.log_file or default_log_file()
    setup_logger(log_file)

    try:
        waf_client = boto3.client('wafv2', region_name=config.aws_region())
        web_acls = list_web_acls(waf_client, args.pattern)
        logging.info(f"Found {len(web_acls)} web ACLs with '{args.pattern}' in their description")

        failed = [name for name, acl_id in web_acls if not delete_web_acl(waf_client, name, acl_id)]
    except Exception as e:
        logging.error(f"Unhandled exception: {e}")
        finish_log(log_file, False)
        sys.exit(1)

    for name in failed:
        logging.warning(f"   - failed: {name}")
    logging.info("All matching web ACLs processed.")
    finish_log(log_file, not failed)
    sys.exit(0)


if __name__ == "__main__":
    main()
