"""Settings read from the environment (and a local .env file, if present)."""
import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_REGION = "us-east-1"
DEFAULT_AGGREGATOR_NAME = "aws-controltower-ConfigAggregatorForOrganizations"


def aws_region():
    return os.environ.get("AWS_REGION") or DEFAULT_REGION


def aggregator_name():
    return os.environ.get("AGGREGATOR_NAME") or DEFAULT_AGGREGATOR_NAME


def input_dir():
    return os.environ.get("INPUT_DIR") or "input"


def output_dir():
    return os.environ.get("OUTPUT_DIR") or "output"


def accounts_excel():
    """Workbook that maps account ids to account names."""
    return os.path.join(input_dir(), os.environ.get("ACCOUNTS_EXCEL") or "AWS_Accounts.xlsx")


def input_excel():
    return os.path.join(input_dir(), os.environ.get("INPUT_EXCEL") or "AWS_Config_Report.xlsx")


def output_excel():
    return os.path.join(output_dir(), os.environ.get("OUTPUT_EXCEL") or "Updated_AWS_Config_Report.xlsx")


def excluded_account_ids():
    """Account ids left out of the Secrets Manager findings report."""
    raw = os.environ.get("SECRETS_REPORT_EXCLUDED_ACCOUNTS", "")
    return [account_id.strip() for account_id in raw.split(",") if account_id.strip()]
