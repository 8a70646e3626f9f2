"""
Tests for the Excel reports: Security Hub findings, AWS Config and bucket categorization.
"""

import json
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from openpyxl import Workbook, load_workbook

from aws_housekeeping.reports import categorize, config_report, security_hub
from aws_housekeeping.reports.categorize import (
    MANUAL_REVIEW,
    NO_LONGER_USED,
    UNSURE,
    bucket_name_from_resource_id,
    categorize_account,
    categorize_bucket,
    read_report_rows,
)
from aws_housekeeping.reports.config_report import extract_non_compliant_rules, format_rows, generate_config_report
from aws_housekeeping.reports.excel import normalize_account_id, read_account_map, write_workbook
from aws_housekeeping.reports.security_hub import BLOCK_PUBLIC_ACCESS, SECRETS_MANAGER, build_filters, build_rows

NOW = datetime(2026, 10, 1, tzinfo=timezone.utc)


def paginated(*pages):
    client = MagicMock()
    client.get_paginator.return_value.paginate.return_value = list(pages)
    return client


def bucket_finding(name="my-bucket", tags=None):
    return {
        'AwsAccountId': '111122223333',
        'AwsAccountName': 'sandbox',
        'Region': 'us-east-1',
        'Severity': {'Label': 'MEDIUM'},
        'UpdatedAt': '2026-09-30T10:00:00.000Z',
        'Resources': [{
            'Details': {'AwsS3Bucket': {'Name': name}} if name else {},
            'Tags': tags or {},
        }],
    }


def write_accounts_workbook(path, rows):
    wb = Workbook()
    ws = wb.active
    ws.title = "Organization_accounts"
    ws.append(["Id", "Arn", "Email", "Name"])
    for row in rows:
        ws.append(row)
    wb.save(path)


class TestSecurityHubReport:
    """Security Hub findings to rows and sheets."""

    def test_filters(self):
        filters = build_filters(BLOCK_PUBLIC_ACCESS)

        assert filters['GeneratorId'] == [{'Value': 'security-control/S3.8', 'Comparison': 'EQUALS'}]
        assert filters['ResourceType'] == [{'Value': 'AwsS3Bucket', 'Comparison': 'EQUALS'}]
        assert [f['Value'] for f in filters['WorkflowStatus']] == ['NEW', 'NOTIFIED']
        assert filters['RecordState'] == [{'Value': 'ACTIVE', 'Comparison': 'EQUALS'}]
        assert 'AwsAccountId' not in filters

    def test_excluded_accounts(self):
        filters = build_filters(SECRETS_MANAGER, ['123', '456'])

        assert filters['AwsAccountId'] == [
            {'Value': '123', 'Comparison': 'NOT_EQUALS'},
            {'Value': '456', 'Comparison': 'NOT_EQUALS'},
        ]

    def test_rows(self):
        finding = bucket_finding(tags={'aws:cloudformation:stack-name': 'owner'})

        finding_rows, tag_rows = build_rows([finding], BLOCK_PUBLIC_ACCESS)

        assert finding_rows == [{
            'accountId': '111122223333',
            'accountName': 'sandbox',
            'severity': 'MEDIUM',
            'region': 'us-east-1',
            'resourceName': 'my-bucket',
            'lastUpdated': '2026-09-30T10:00:00.000Z',
        }]
        assert tag_rows[0]['tags'] == 'owner'

    def test_missing_fields_use_placeholders(self):
        finding_rows, tag_rows = build_rows([{'Resources': []}], BLOCK_PUBLIC_ACCESS)

        row = finding_rows[0]
        assert row['accountId'] == 'UNKNOWN_ACCOUNT'
        assert row['accountName'] == row['severity'] == row['region'] == row['lastUpdated'] == 'N/A'
        assert tag_rows[0]['tags'] == 'N/A (invalid bucket name)'

    def test_untagged_resource(self):
        _, tag_rows = build_rows([bucket_finding()], BLOCK_PUBLIC_ACCESS)
        assert tag_rows[0]['tags'] == 'N/A'

    def test_invalid_secret_name_label(self):
        _, tag_rows = build_rows([bucket_finding(name=None)], SECRETS_MANAGER)
        assert tag_rows[0]['tags'] == 'N/A (invalid Secrets name)'

    def test_export_writes_both_sheets(self, tmp_path):
        client = paginated({'Findings': [bucket_finding()]}, {'Findings': [bucket_finding('other')]})

        output_path = security_hub.export_findings(client, BLOCK_PUBLIC_ACCESS, str(tmp_path / "out"))

        assert output_path == os.path.join(str(tmp_path / "out"), 's3-block-pub-access-findings.xlsx')
        client.get_paginator.assert_called_once_with('get_findings')
        assert client.get_paginator.return_value.paginate.call_args.kwargs['PaginationConfig'] == {'PageSize': 100}

        wb = load_workbook(output_path)
        assert wb.sheetnames == ['S3.8 - Block-Pub-Access Buckets', 'Bucket CF Tags']
        findings_sheet = wb['S3.8 - Block-Pub-Access Buckets']
        assert [c.value for c in findings_sheet[1]] == [
            'Account ID', 'Account Name', 'Severity', 'Region', 'S3 Bucket Name', 'Last Updated'
        ]
        assert findings_sheet.max_row == 3
        assert findings_sheet.column_dimensions['E'].width == 65
        tags_sheet = wb['Bucket CF Tags']
        assert [c.value for c in tags_sheet[1]][-1] == 'CloudformationTags'

    def test_run_exits_1_on_failure(self):
        with patch('boto3.client', side_effect=RuntimeError("no credentials")):
            with pytest.raises(SystemExit) as exc_info:
                security_hub.block_public_access_main()
        assert exc_info.value.code == 1


class TestConfigReport:
    """Non-compliant buckets from the AWS Config aggregator."""

    def test_extract_non_compliant_rules(self):
        rules = [
            {'configRuleName': 's3-bucket-logging-enabled', 'complianceType': 'NON_COMPLIANT'},
            {'configRuleName': 's3-bucket-versioning-enabled', 'complianceType': 'COMPLIANT'},
            {'configRuleName': 's3-bucket-ssl-requests-only', 'complianceType': 'NON_COMPLIANT'},
        ]
        assert extract_non_compliant_rules(rules) == "s3-bucket-logging-enabled\ns3-bucket-ssl-requests-only"
        assert extract_non_compliant_rules([]) == "N/A"
        assert extract_non_compliant_rules(None) == "N/A"

    def test_format_rows(self):
        raw = [{
            'resourceId': 'AWS::S3::Bucket/my-bucket',
            'accountId': '111122223333',
            'configuration': {'targetResourceType': 'AWS::S3::Bucket', 'complianceType': 'NON_COMPLIANT'},
        }]

        rows = format_rows(raw, {'111122223333': 'sandbox'})

        assert rows[0]['AccountName'] == 'sandbox'
        assert rows[0]['Non_Compliant_Rules'] == 'N/A'
        assert format_rows(raw, {})[0]['AccountName'] == 'N/A'

    def test_generate_report(self, tmp_path):
        accounts = tmp_path / "AWS_Accounts.xlsx"
        write_accounts_workbook(accounts, [[111122223333, "arn", "a@example.com", "sandbox"]])
        result = {
            'resourceId': 'AWS::S3::Bucket/my-bucket',
            'accountId': '111122223333',
            'configuration': {
                'targetResourceType': 'AWS::S3::Bucket',
                'complianceType': 'NON_COMPLIANT',
                'configRuleList': [{'configRuleName': 'rule-a', 'complianceType': 'NON_COMPLIANT'}],
            },
        }
        client = paginated({'Results': [json.dumps(result)]})

        output_path = generate_config_report(client, 'aggregator', str(accounts), str(tmp_path / "out"))

        paginate_kwargs = client.get_paginator.return_value.paginate.call_args.kwargs
        assert paginate_kwargs['ConfigurationAggregatorName'] == 'aggregator'
        assert "NON_COMPLIANT" in paginate_kwargs['Expression']
        ws = load_workbook(output_path)['AWS_Config_Report']
        assert [c.value for c in ws[2]] == [
            'AWS::S3::Bucket/my-bucket', '111122223333', 'sandbox', 'AWS::S3::Bucket', 'NON_COMPLIANT', 'rule-a'
        ]

    def test_no_results_writes_nothing(self, tmp_path):
        client = paginated({'Results': []})

        assert generate_config_report(client, 'aggregator', str(tmp_path / "missing.xlsx"), str(tmp_path)) is None
        assert not os.path.exists(tmp_path / "AWS_Config_Report.xlsx")


class TestAccountMap:
    """Reading account names from the accounts workbook."""

    def test_read_account_map(self, tmp_path):
        path = tmp_path / "accounts.xlsx"
        write_accounts_workbook(path, [
            [12345678901, "arn", "a@example.com", "legacy"],
            ["222233334444", "arn", "b@example.com", " prod "],
            [None, "arn", "c@example.com", "no id"],
        ])

        assert read_account_map(str(path)) == {'012345678901': 'legacy', '222233334444': 'prod'}

    @pytest.mark.parametrize("value, expected", [
        (12345678901, '012345678901'),
        ("12345678901.0", '012345678901'),
        ("abc", None),
        (None, None),
    ])
    def test_normalize_account_id(self, value, expected):
        assert normalize_account_id(value) == expected


class TestCategorize:
    """Categorizing the buckets of one account."""

    def test_bucket_name_from_resource_id(self):
        assert bucket_name_from_resource_id('AWS::S3::Bucket/my-bucket') == 'my-bucket'
        assert bucket_name_from_resource_id(None) == 'UNKNOWN'

    def test_missing_lifecycle_means_cleanup(self, client_error):
        s3 = MagicMock()
        s3.get_bucket_lifecycle_configuration.side_effect = client_error(
            'NoSuchLifecycleConfiguration', 'The lifecycle configuration does not exist'
        )
        assert categorize_bucket(s3, 'b', NOW) == NO_LONGER_USED

    def test_expiring_lifecycle_means_cleanup(self):
        s3 = MagicMock()
        s3.get_bucket_lifecycle_configuration.return_value = {'Rules': [{'Expiration': {'Days': 30}}]}
        assert categorize_bucket(s3, 'b', NOW) == NO_LONGER_USED

    def test_empty_bucket_means_cleanup(self):
        s3 = MagicMock()
        s3.get_bucket_lifecycle_configuration.return_value = {'Rules': [{'Transitions': []}]}
        s3.list_objects_v2.return_value = {'KeyCount': 0}
        assert categorize_bucket(s3, 'b', NOW) == NO_LONGER_USED

    def test_recent_objects_mean_unsure(self):
        s3 = MagicMock()
        s3.get_bucket_lifecycle_configuration.return_value = {'Rules': []}
        s3.list_objects_v2.return_value = {'KeyCount': 1}
        s3.get_paginator.return_value.paginate.return_value = [
            {'Contents': [{'Key': 'old', 'LastModified': NOW - timedelta(days=400)}]},
            {'Contents': [{'Key': 'new', 'LastModified': NOW - timedelta(days=5)}]},
        ]
        assert categorize_bucket(s3, 'b', NOW) == UNSURE

    def test_old_objects_need_manual_review(self):
        s3 = MagicMock()
        s3.get_bucket_lifecycle_configuration.return_value = {'Rules': []}
        s3.list_objects_v2.return_value = {'KeyCount': 1}
        s3.get_paginator.return_value.paginate.return_value = [
            {'Contents': [{'Key': 'old', 'LastModified': NOW - timedelta(days=400)}]},
        ]
        assert categorize_bucket(s3, 'b', NOW) == MANUAL_REVIEW

    def test_inspection_errors_need_manual_review(self, client_error):
        s3 = MagicMock()
        s3.get_bucket_lifecycle_configuration.side_effect = client_error('AccessDenied', 'Access Denied')
        assert categorize_bucket(s3, 'b', NOW) == MANUAL_REVIEW

    def test_only_requested_account_is_categorized(self):
        rows = [
            {'resourceId': 'AWS::S3::Bucket/a', 'AccountId': '111122223333', 'BucketName': '', 'Category': ''},
            {'resourceId': 'AWS::S3::Bucket/b', 'AccountId': '444455556666', 'BucketName': '', 'Category': ''},
        ]
        s3 = MagicMock()
        s3.get_bucket_lifecycle_configuration.return_value = {'Rules': [{'Expiration': {'Days': 1}}]}

        categorized = categorize_account(s3, rows, '111122223333', NOW)

        assert [row['BucketName'] for row in categorized] == ['a']
        assert rows[0]['Category'] == NO_LONGER_USED
        assert rows[1]['Category'] == ''

    def test_reads_config_report_output(self, tmp_path):
        path = str(tmp_path / "AWS_Config_Report.xlsx")
        rows = format_rows([{
            'resourceId': 'AWS::S3::Bucket/my-bucket',
            'accountId': '011122223333',
            'configuration': {'targetResourceType': 'AWS::S3::Bucket', 'complianceType': 'NON_COMPLIANT'},
        }], {})
        write_workbook(path, {'AWS_Config_Report': (config_report.REPORT_COLUMNS, rows)})

        report_rows = read_report_rows(path)

        assert report_rows[0]['resourceId'] == 'AWS::S3::Bucket/my-bucket'
        assert report_rows[0]['AccountId'] == '011122223333'
        assert report_rows[0]['AccountName'] == 'N/A'
        assert report_rows[0]['Category'] == ''

    def test_main_requires_account_id(self):
        with pytest.raises(SystemExit) as exc_info:
            categorize.main([])
        assert exc_info.value.code == 1

    def test_main_writes_updated_workbook(self, tmp_path, monkeypatch):
        monkeypatch.setenv("INPUT_DIR", str(tmp_path / "in"))
        monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "out"))
        rows = format_rows([{'resourceId': 'AWS::S3::Bucket/my-bucket', 'accountId': '111122223333'}], {})
        write_workbook(str(tmp_path / "in" / "AWS_Config_Report.xlsx"),
                       {'AWS_Config_Report': (config_report.REPORT_COLUMNS, rows)})
        s3 = MagicMock()
        s3.get_bucket_lifecycle_configuration.return_value = {'Rules': [{'Expiration': {'Days': 1}}]}

        with patch('boto3.client', return_value=s3):
            categorize.main(['111122223333'])

        ws = load_workbook(tmp_path / "out" / "Updated_AWS_Config_Report.xlsx")['AWS_Config_Report']
        header = [c.value for c in ws[1]]
        assert header[-2:] == ['Bucket Name', 'Category']
        assert [c.value for c in ws[2]][-2:] == ['my-bucket', NO_LONGER_USED]
