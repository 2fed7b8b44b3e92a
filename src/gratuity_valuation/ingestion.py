"""
gratuity_valuation/ingestion.py - Employee Roster Ingestion

Loads the active employee roster used by a valuation:
1. Excel (first sheet) or CSV input, or an in-memory DataFrame
2. Column standardization (AGE / PS / PAY / ECODE ... -> Age / PastService / Pay / EmployeeCode)
3. SHA-256 hash of the input file for the audit trail
4. Salted hashing of employee names
5. Exclusion of records without a usable age or pay

Author: Actuarial Pipeline Project
License: MIT
"""

import numpy as np
import pandas as pd
import hashlib
import secrets
from typing import Any, Dict, Iterable, List, Optional, Union
from dataclasses import dataclass, field
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


class MissingEmployeeDataError(ValueError):
    """The employee roster is absent, empty or lacks required columns."""


@dataclass
class EmployeeRecord:
    """Minimal valuation inputs for one active employee."""
    age: int
    past_service: float
    pay: float
    employee_id: str = ""

    def __post_init__(self):
        # Age last birthday; the service table is indexed by integer age
        self.age = int(self.age)
        self.past_service = float(self.past_service)
        self.pay = float(self.pay)

    @classmethod
    def from_row(cls, row: Dict[str, Any], default_id: str = "") -> 'EmployeeRecord':
        return cls(
            age=row['Age'],
            past_service=row.get('PastService', 0) or 0,
            pay=row['Pay'],
            employee_id=str(row.get('EmployeeCode', default_id) or default_id),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'EmployeeCode': self.employee_id,
            'Age': self.age,
            'PastService': self.past_service,
            'Pay': self.pay,
        }


@dataclass
class RosterResult:
    """Clean roster plus audit information."""
    records: List[EmployeeRecord]
    data: pd.DataFrame
    input_hash: str = ""
    input_filename: str = ""
    total_records: int = 0
    excluded_records: int = 0
    excluded_ids: List[str] = field(default_factory=list)

    def get_summary(self) -> Dict[str, Any]:
        return {
            'input_file': self.input_filename,
            'input_hash': self.input_hash,
            'total_records': self.total_records,
            'valued_records': len(self.records),
            'excluded_records': self.excluded_records,
            'total_pay': float(sum(r.pay for r in self.records)),
        }


class RosterLoader:
    """
    Active employee roster loader.

    Required columns after standardization: Age, Pay.
    PastService defaults to 0 when the column is absent.
    """

    REQUIRED_COLUMNS = {'Age', 'Pay'}

    COLUMN_ALIASES = {
        'age': 'Age',
        'ps': 'PastService', 'pastservice': 'PastService', 'service': 'PastService',
        'yearsofservice': 'PastService',
        'pay': 'Pay', 'salary': 'Pay', 'monthlypay': 'Pay', 'wages': 'Pay',
        'ecode': 'EmployeeCode', 'employeecode': 'EmployeeCode', 'employeeid': 'EmployeeCode',
        'id': 'EmployeeCode',
        'name': 'Name', 'employeename': 'Name',
        'doa': 'DOA', 'dateofappointment': 'DOA', 'dateofjoining': 'DOA',
        'dob': 'DOB', 'dateofbirth': 'DOB',
    }

    def __init__(self, anonymize_names: bool = True, salt: Optional[str] = None):
        self.anonymize_names = anonymize_names
        self.salt = salt or secrets.token_hex(16)

    def load_file(self, filepath: Union[str, Path],
                  sheet_name: Optional[str] = None) -> RosterResult:
        """
        Load a roster file.

        Args:
            filepath: Path to Excel or CSV file
            sheet_name: Excel sheet (first sheet when omitted)

        Returns:
            RosterResult with EmployeeRecords and audit information
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise MissingEmployeeDataError(f"Employee data file not found: {filepath}")

        file_hash = self._hash_file(filepath)
        logger.info(f"Loading roster: {filepath.name} (SHA-256: {file_hash[:16]}...)")

        suffix = filepath.suffix.lower()
        if suffix in ('.xlsx', '.xls'):
            df = pd.read_excel(filepath, sheet_name=sheet_name or 0)
        elif suffix == '.csv':
            df = pd.read_csv(filepath)
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")

        result = self.load_frame(df)
        result.input_hash = file_hash
        result.input_filename = filepath.name
        return result

    def load_frame(self, df: pd.DataFrame) -> RosterResult:
        """Standardize and validate an in-memory roster."""
        if df is None or df.empty:
            raise MissingEmployeeDataError("Employee data is empty")

        total_records = len(df)
        df = self._standardize_columns(df)

        missing = self.REQUIRED_COLUMNS - set(df.columns)
        if missing:
            raise MissingEmployeeDataError(
                f"Employee data missing required columns: {sorted(missing)}"
            )

        if self.anonymize_names and 'Name' in df.columns:
            df['Name'] = df['Name'].apply(self._hash_value)

        df = self._coerce_numeric(df)

        usable = df['Age'].notna() & df['Pay'].notna()
        excluded_ids = df.loc[~usable, 'EmployeeCode'].astype(str).tolist()
        if excluded_ids:
            logger.warning(f"Excluded {len(excluded_ids)} records without age or pay: "
                           f"{excluded_ids[:10]}")

        df = df[usable].reset_index(drop=True)
        records = [
            EmployeeRecord.from_row(row, default_id=f'E{idx:05d}')
            for idx, row in enumerate(df.to_dict('records'))
        ]
        if not records:
            raise MissingEmployeeDataError("Employee data has no usable records")

        logger.info(f"Roster ready: {len(records)} of {total_records} records valued")

        return RosterResult(
            records=records,
            data=df,
            total_records=total_records,
            excluded_records=len(excluded_ids),
            excluded_ids=excluded_ids,
        )

    def _hash_file(self, filepath: Path) -> str:
        sha256 = hashlib.sha256()
        with open(filepath, 'rb') as f:
            for chunk in iter(lambda: f.read(8192), b''):
                sha256.update(chunk)
        return sha256.hexdigest()

    def _hash_value(self, value: Any) -> Any:
        if value is None or (isinstance(value, float) and np.isnan(value)):
            return value
        salted = f"{self.salt}{value}".encode()
        return hashlib.sha256(salted).hexdigest()[:16]

    def _standardize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        rename_map = {}
        for col in df.columns:
            key = str(col).lower().replace(' ', '').replace('_', '')
            if key in self.COLUMN_ALIASES:
                rename_map[col] = self.COLUMN_ALIASES[key]

        df = df.rename(columns=rename_map)

        if 'EmployeeCode' not in df.columns:
            df['EmployeeCode'] = [f'E{i:05d}' for i in range(len(df))]
        if 'PastService' not in df.columns:
            df['PastService'] = 0.0

        return df

    def _coerce_numeric(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        for col in ('Age', 'PastService', 'Pay'):
            df[col] = pd.to_numeric(df[col], errors='coerce')
        df['PastService'] = df['PastService'].fillna(0.0)
        return df


def records_from_rows(rows: Union[pd.DataFrame, Iterable[Any]]) -> List[EmployeeRecord]:
    """
    Normalize a roster given as a DataFrame, dict rows or EmployeeRecords.

    Raises:
        MissingEmployeeDataError: if the roster is empty
    """
    if isinstance(rows, pd.DataFrame):
        return RosterLoader(anonymize_names=False).load_frame(rows).records

    records = []
    for idx, row in enumerate(rows or []):
        if isinstance(row, EmployeeRecord):
            records.append(row)
        else:
            records.append(EmployeeRecord.from_row(row, default_id=f'E{idx:05d}'))

    if not records:
        raise MissingEmployeeDataError("Employee data is empty")
    return records


def load_roster(source: Union[str, Path, pd.DataFrame],
                sheet_name: Optional[str] = None,
                anonymize_names: bool = True) -> RosterResult:
    """Load a roster from a file path or a DataFrame."""
    loader = RosterLoader(anonymize_names=anonymize_names)
    if isinstance(source, pd.DataFrame):
        return loader.load_frame(source)
    return loader.load_file(source, sheet_name)
