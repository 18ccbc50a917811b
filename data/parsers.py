"""
Data parsers for playlist and vendor sheets (Excel or CSV).
"""

import pandas as pd
import logging
import re
from typing import Dict, List, Optional, Any
from datetime import datetime
from pathlib import Path

from models.data_models import MAX_MATCHED_GENRES

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


TRUE_VALUES = {'true', 'yes', 'y', '1', 'active'}
FALSE_VALUES = {'false', 'no', 'n', '0', 'inactive'}


def normalize_column(name: Any) -> str:
    """'Avg Daily Streams ' -> 'avg_daily_streams'"""
    return re.sub(r'[^a-z0-9]+', '_', str(name).strip().lower()).strip('_')


def parse_genres(value: Any) -> List[str]:
    """Split a genre cell on commas, semicolons or pipes into lowercase tags."""
    if value is None or (not isinstance(value, (list, tuple)) and pd.isna(value)):
        return []
    if isinstance(value, (list, tuple)):
        parts = value
    else:
        parts = re.split(r'[,;|]', str(value))

    genres = []
    for part in parts:
        genre = str(part).strip().lower()
        if genre and genre not in genres:
            genres.append(genre)
    return genres


def parse_bool(value: Any, default: bool = True) -> bool:
    if value is None or (not isinstance(value, bool) and pd.isna(value)):
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return default


def _text(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _optional_number(value: Any, cast=float) -> Optional[Any]:
    if value is None or pd.isna(value) or str(value).strip() == '':
        return None
    return cast(float(value))


class SheetParser:
    """
    Base parser for a single-sheet Excel or CSV export.

    Subclasses declare their required and optional columns and turn each
    row into a plain record dictionary.
    """

    required_columns: List[str] = []
    sheet_name: Any = 0

    def __init__(self, file_path: str):
        """
        Initialize the parser with a sheet file path.

        Args:
            file_path: Path to the .xlsx, .xls or .csv file
        """
        self.file_path = Path(file_path)
        self.records: List[Dict[str, Any]] = []
        self.skipped_rows: List[int] = []
        self.last_updated = None

        if not self.file_path.exists():
            raise FileNotFoundError(f"Sheet file not found: {file_path}")

    def read_frame(self) -> pd.DataFrame:
        """Read the file into a DataFrame with normalized column names."""
        suffix = self.file_path.suffix.lower()
        if suffix == '.csv':
            df = pd.read_csv(self.file_path)
        elif suffix in ('.xlsx', '.xls'):
            df = pd.read_excel(self.file_path, sheet_name=self.sheet_name)
        else:
            raise ValueError(f"Unsupported file format: {suffix}")

        df.columns = [normalize_column(c) for c in df.columns]
        missing = [c for c in self.required_columns if c not in df.columns]
        if missing:
            raise ValueError(f"Missing column(s) in {self.file_path.name}: {', '.join(missing)}")
        return df

    def parse_records(self) -> List[Dict[str, Any]]:
        """
        Parse every valid row into a record.

        Rows that fail conversion are skipped with a warning.

        Raises:
            ValueError: If the file cannot be read or lacks required columns
        """
        try:
            df = self.read_frame()
        except Exception as e:
            logger.error(f"Error reading {self.file_path}: {str(e)}")
            raise ValueError(f"Failed to parse {self.file_path.name}: {str(e)}")

        records = []
        self.skipped_rows = []
        seen_ids = set()

        for idx, row in df.iterrows():
            row_id = row.get('id')
            if row_id is None or pd.isna(row_id) or str(row_id).strip() == '':
                continue

            try:
                record = self.parse_row(row)
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping row {idx + 2} in {self.file_path.name}: {str(e)}")
                self.skipped_rows.append(idx)
                continue

            if record['id'] in seen_ids:
                logger.warning(f"Duplicate id {record['id']} in {self.file_path.name}; keeping first row")
                self.skipped_rows.append(idx)
                continue

            seen_ids.add(record['id'])
            records.append(record)

        self.records = records
        self.last_updated = datetime.now()
        logger.info(f"Parsed {len(records)} rows from {self.file_path.name}")
        return records

    def parse_row(self, row: pd.Series) -> Dict[str, Any]:
        raise NotImplementedError


class PlaylistSheetParser(SheetParser):
    """Parser for playlist inventory sheets."""

    required_columns = ['id', 'vendor_id', 'name', 'genres', 'avg_daily_streams']

    def parse_row(self, row: pd.Series) -> Dict[str, Any]:
        streams = row.get('avg_daily_streams')
        if pd.isna(streams):
            raise ValueError("missing avg_daily_streams")
        streams = int(float(streams))
        if streams < 0:
            raise ValueError(f"negative avg_daily_streams {streams}")

        vendor_id = _text(row.get('vendor_id'))
        if not vendor_id:
            raise ValueError("missing vendor_id")

        playlist_id = _text(row['id'])
        genres = parse_genres(row.get('genres'))
        if len(genres) > MAX_MATCHED_GENRES:
            logger.warning(
                f"Playlist {playlist_id} has {len(genres)} genres; only "
                f"{', '.join(genres[:MAX_MATCHED_GENRES])} are used for matching"
            )

        return {
            'id': playlist_id,
            'vendor_id': vendor_id,
            'name': _text(row.get('name')),
            'genres': genres,
            'avg_daily_streams': streams,
            'follower_count': _optional_number(row.get('follower_count'), int),
            'url': _text(row.get('url')),
        }


class VendorSheetParser(SheetParser):
    """Parser for vendor capacity sheets."""

    required_columns = ['id', 'name', 'max_daily_streams']

    def parse_row(self, row: pd.Series) -> Dict[str, Any]:
        max_daily = row.get('max_daily_streams')
        if pd.isna(max_daily):
            raise ValueError("missing max_daily_streams")
        max_daily = int(float(max_daily))
        if max_daily < 0:
            raise ValueError(f"negative max_daily_streams {max_daily}")

        concurrent = _optional_number(row.get('max_concurrent_campaigns'), int)

        return {
            'id': _text(row['id']),
            'name': _text(row.get('name')),
            'max_daily_streams': max_daily,
            'max_concurrent_campaigns': concurrent if concurrent is not None else 1,
            'cost_per_1k_streams': _optional_number(row.get('cost_per_1k_streams')),
            'is_active': parse_bool(row.get('is_active'), default=True),
        }
