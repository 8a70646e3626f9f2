"""Reading and writing the report workbooks."""
import logging
import os

import pandas as pd
from openpyxl.utils import get_column_letter

PLACEHOLDER = "N/A"


def ensure_dir(dir_path):
    """Create the directory if it does not exist yet."""
    if dir_path and not os.path.exists(dir_path):
        os.makedirs(dir_path, exist_ok=True)


def to_dataframe(columns, rows):
    """Build a DataFrame with one column per (header, key, width) entry, in that order."""
    keys = [key for _, key, _ in columns]
    df = pd.DataFrame([{key: row.get(key, "") for key in keys} for row in rows], columns=keys)
    df.columns = [header for header, _, _ in columns]
    return df


def write_workbook(output_path, sheets):
    """Write {sheet_name: (columns, rows)} to an .xlsx file.

    `columns` is a list of (header, key, width) tuples; every row is a dict
    looked up by key. Column widths are fixed by the layout, not the data.
    """
    ensure_dir(os.path.dirname(output_path))

    with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
        for sheet_name, (columns, rows) in sheets.items():
            to_dataframe(columns, rows).to_excel(writer, sheet_name=sheet_name, index=False)
            worksheet = writer.sheets[sheet_name]
            for i, (_, _, width) in enumerate(columns):
                if width:
                    # openpyxl column indices are 1-based
                    worksheet.column_dimensions[get_column_letter(i + 1)].width = width

    logging.info(f"Data successfully exported to: {output_path}")
    return output_path


def read_sheet(input_path, sheet_name):
    """Read a worksheet as a list of row value lists, header row excluded."""
    # only blank cells are missing; "N/A" placeholders are kept as text
    df = pd.read_excel(
        input_path, sheet_name=sheet_name, dtype=object, engine='openpyxl', keep_default_na=False, na_values=['']
    )
    return [[None if pd.isna(value) else value for value in row] for row in df.itertuples(index=False, name=None)]


def normalize_account_id(value):
    """Return a 12-digit account id; Excel stores ids as numbers and drops leading zeros."""
    if value is None:
        return None
    text = str(value).strip()
    if text.endswith(".0"):
        text = text[:-2]
    if not text.isdigit():
        return None
    return text.zfill(12)


def read_account_map(input_path, sheet_name="Organization_accounts"):
    """Map account id -> account name from column A (id) and column D (name)."""
    account_map = {}
    for row in read_sheet(input_path, sheet_name):
        if len(row) < 4:
            continue
        account_id = normalize_account_id(row[0])
        account_name = row[3]
        if account_id and account_name is not None:
            account_map[account_id] = str(account_name).strip()
    return account_map
