"""Export active Security Hub findings to Excel.

Two reports share the same flow: fetch every active finding for one security
control, write one sheet listing the findings and a second sheet with the
CloudFormation stack tag of each affected resource.

    security-hub-block-public-access   S3.8 (S3 Block Public Access)
    security-hub-secrets-manager       SecretsManager.3 (unused secrets)
"""
import logging
import os
import sys

import boto3

from aws_housekeeping import config
from aws_housekeeping.reports.excel import PLACEHOLDER, ensure_dir, write_workbook

STACK_NAME_TAG = 'aws:cloudformation:stack-name'
PAGE_SIZE = 100

BLOCK_PUBLIC_ACCESS = {
    'generator_id': 'security-control/S3.8',
    'resource_type': 'AwsS3Bucket',
    'details_key': 'AwsS3Bucket',
    'name_header': 'S3 Bucket Name',
    'invalid_name': 'N/A (invalid bucket name)',
    'output_file': 's3-block-pub-access-findings.xlsx',
    'findings_sheet': 'S3.8 - Block-Pub-Access Buckets',
    'tags_sheet': 'Bucket CF Tags',
}

SECRETS_MANAGER = {
    'generator_id': 'security-control/SecretsManager.3',
    'resource_type': 'AwsSecretsManagerSecret',
    'details_key': 'AwsSecretsManagerSecret',
    'name_header': 'Secrets Name',
    'invalid_name': 'N/A (invalid Secrets name)',
    'output_file': 's3-secrets-mgr-findings.xlsx',
    'findings_sheet': 'SecretsManager.3 Findings',
    'tags_sheet': 'SecretsManager CF Tags',
}


def string_filter(value, comparison='EQUALS'):
    return {'Value': value, 'Comparison': comparison}


def build_filters(report, excluded_accounts=()):
    """Active, unresolved findings of the report's control and resource type."""
    filters = {
        'GeneratorId': [string_filter(report['generator_id'])],
        'ResourceType': [string_filter(report['resource_type'])],
        'WorkflowStatus': [string_filter('NEW'), string_filter('NOTIFIED')],
        'RecordState': [string_filter('ACTIVE')],
    }
    if excluded_accounts:
        filters['AwsAccountId'] = [string_filter(account_id, 'NOT_EQUALS') for account_id in excluded_accounts]
    return filters


def get_findings(securityhub_client, filters):
    """Fetch all findings matching the filters, following NextToken."""
    findings = []
    paginator = securityhub_client.get_paginator('get_findings')
    for page in paginator.paginate(Filters=filters, PaginationConfig={'PageSize': PAGE_SIZE}):
        findings.extend(page.get('Findings', []))
    return findings


def first_resource(finding):
    resources = finding.get('Resources') or []
    return resources[0] if resources else {}


def stack_name_tag(finding):
    """The CloudFormation stack name from the first resource's tags, or N/A."""
    tags = first_resource(finding).get('Tags') or {}
    return tags.get(STACK_NAME_TAG) or PLACEHOLDER


def build_rows(findings, report):
    """Map findings to (finding_rows, tag_rows) for the report's two sheets."""
    finding_rows = []
    tag_rows = []

    for finding in findings:
        account_id = finding.get('AwsAccountId') or 'UNKNOWN_ACCOUNT'
        account_name = finding.get('AwsAccountName') or PLACEHOLDER
        region = finding.get('Region') or PLACEHOLDER
        details = first_resource(finding).get('Details') or {}
        resource_name = (details.get(report['details_key']) or {}).get('Name') or PLACEHOLDER

        finding_rows.append({
            'accountId': account_id,
            'accountName': account_name,
            'severity': (finding.get('Severity') or {}).get('Label') or PLACEHOLDER,
            'region': region,
            'resourceName': resource_name,
            'lastUpdated': finding.get('UpdatedAt') or PLACEHOLDER,
        })
        tag_rows.append({
            'accountId': account_id,
            'accountName': account_name,
            'region': region,
            'resourceName': resource_name,
            'tags': report['invalid_name'] if resource_name == PLACEHOLDER else stack_name_tag(finding),
        })

    return finding_rows, tag_rows


def report_sheets(report, finding_rows, tag_rows):
    findings_columns = [
        ('Account ID', 'accountId', 15),
        ('Account Name', 'accountName', 20),
        ('Severity', 'severity', 10),
        ('Region', 'region', 10),
        (report['name_header'], 'resourceName', 65),
        ('Last Updated', 'lastUpdated', 28),
    ]
    tags_columns = [
        ('Account ID', 'accountId', 20),
        ('Account Name', 'accountName', 20),
        ('Region', 'region', 10),
        (report['name_header'], 'resourceName', 65),
        ('CloudformationTags', 'tags', 40),
    ]
    return {
        report['findings_sheet']: (findings_columns, finding_rows),
        report['tags_sheet']: (tags_columns, tag_rows),
    }


def export_findings(securityhub_client, report, output_dir, excluded_accounts=()):
    """Fetch the report's findings and write its workbook. Returns the output path."""
    ensure_dir(output_dir)
    findings = get_findings(securityhub_client, build_filters(report, excluded_accounts))
    finding_rows, tag_rows = build_rows(findings, report)

    output_path = os.path.join(output_dir, report['output_file'])
    write_workbook(output_path, report_sheets(report, finding_rows, tag_rows))

    logging.info(f'Excel file "{output_path}" created.')
    logging.info(f'  - "{report["findings_sheet"]}" sheet rows: {len(finding_rows)}')
    logging.info(f'  - "{report["tags_sheet"]}" sheet rows: {len(tag_rows)}')
    return output_path


def run(report, excluded_accounts=()):
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    try:
        securityhub_client = boto3.client('securityhub', region_name=config.aws_region())
        export_findings(securityhub_client, report, config.output_dir(), excluded_accounts)
    except Exception as e:
        logging.error(f"Failed to export {report['generator_id']} findings to Excel: {e}")
        sys.exit(1)


def block_public_access_main():
    run(BLOCK_PUBLIC_ACCESS)


def secrets_manager_main():
    run(SECRETS_MANAGER, config.excluded_account_ids())


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "secrets-manager":
        secrets_manager_main()
    else:
        block_public_access_main()
