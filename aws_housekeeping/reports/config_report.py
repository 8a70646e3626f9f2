"""Export non-compliant S3 buckets from an AWS Config aggregator to Excel.

Account names are taken from the accounts workbook (ACCOUNTS_EXCEL under
INPUT_DIR); the aggregator is AGGREGATOR_NAME. The report is written to
OUTPUT_DIR/AWS_Config_Report.xlsx.
"""
import json
import logging
import os
import sys

import boto3

from aws_housekeeping import config
from aws_housekeeping.reports.excel import PLACEHOLDER, read_account_map, write_workbook

REPORT_FILE = "AWS_Config_Report.xlsx"
REPORT_SHEET = "AWS_Config_Report"

NON_COMPLIANT_BUCKETS_QUERY = (
    "SELECT resourceId, accountId, configuration.targetResourceType, "
    "configuration.complianceType, configuration.configRuleList "
    "WHERE resourceType = 'AWS::Config::ResourceCompliance' "
    "AND configuration.complianceType = 'NON_COMPLIANT' "
    "AND configuration.targetResourceType = 'AWS::S3::Bucket'"
)

REPORT_COLUMNS = [
    ("resourceId", "resourceId", 50),
    ("AccountId", "AccountId", 20),
    ("Account Name", "AccountName", 30),
    ("Target Resource Type", "targetResourceType", 30),
    ("Compliance Type", "complianceType", 20),
    ("Non_Compliant_Rules", "Non_Compliant_Rules", 80),
]


def fetch_aws_config_details(config_client, aggregator_name):
    """Run the aggregator query and return the parsed result items."""
    logging.info("Fetching non-compliant S3 bucket details from AWS Config...")
    results = []
    paginator = config_client.get_paginator('select_aggregate_resource_config')
    for page in paginator.paginate(Expression=NON_COMPLIANT_BUCKETS_QUERY, ConfigurationAggregatorName=aggregator_name):
        # each result is a JSON document serialized as a string
        results.extend(json.loads(entry) for entry in page.get('Results', []))
    return results


def extract_non_compliant_rules(config_rule_list):
    """Newline-separated names of the NON_COMPLIANT rules, or N/A."""
    if not isinstance(config_rule_list, list):
        return PLACEHOLDER
    names = [
        rule.get('configRuleName')
        for rule in config_rule_list
        if rule.get('complianceType') == 'NON_COMPLIANT' and rule.get('configRuleName')
    ]
    return "\n".join(names) if names else PLACEHOLDER


def format_rows(raw_data, account_map):
    rows = []
    for entry in raw_data:
        account_id = str(entry.get('accountId') or '') or PLACEHOLDER
        configuration = entry.get('configuration') or {}
        rows.append({
            'resourceId': entry.get('resourceId') or PLACEHOLDER,
            'AccountId': account_id,
            'AccountName': account_map.get(account_id, PLACEHOLDER),
            'targetResourceType': configuration.get('targetResourceType') or PLACEHOLDER,
            'complianceType': configuration.get('complianceType') or PLACEHOLDER,
            'Non_Compliant_Rules': extract_non_compliant_rules(configuration.get('configRuleList')),
        })
    return rows


def load_account_map(accounts_path):
    if not os.path.isfile(accounts_path):
        logging.warning(f"Accounts workbook {accounts_path} not found. Account names will be {PLACEHOLDER}.")
        return {}
    return read_account_map(accounts_path)


def generate_config_report(config_client, aggregator_name, accounts_path, output_dir):
    """Write the report and return its path, or None when there is nothing to report."""
    account_map = load_account_map(accounts_path)

    raw_data = fetch_aws_config_details(config_client, aggregator_name)
    if not raw_data:
        logging.warning("No non-compliant S3 buckets found.")
        return None

    output_path = os.path.join(output_dir, REPORT_FILE)
    write_workbook(output_path, {REPORT_SHEET: (REPORT_COLUMNS, format_rows(raw_data, account_map))})
    logging.info(f"AWS Config report saved in {output_path}")
    return output_path


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    try:
        config_client = boto3.client('config', region_name=config.aws_region())
        generate_config_report(config_client, config.aggregator_name(), config.accounts_excel(), config.output_dir())
    except Exception as e:
        logging.error(f"Failed to generate AWS Config report: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
