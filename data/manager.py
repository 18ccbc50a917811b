"""
Playlist and vendor directory backed by uploaded sheets.

Parsed rows are cached in memory and mirrored to JSON files in the cache
directory, so a restart does not re-read unchanged sheets.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Any, Tuple, Type

from models.data_models import Playlist, Vendor, MAX_MATCHED_GENRES
from .parsers import SheetParser, PlaylistSheetParser, VendorSheetParser

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


SOURCES = ('playlist', 'vendor')


@dataclass
class DataCacheEntry:
    """Parsed rows of one sheet plus what is needed to tell if they are current."""
    records: List[Dict[str, Any]]
    file_path: str
    file_hash: str
    last_updated: datetime = field(default_factory=datetime.now)
    last_accessed: datetime = field(default_factory=datetime.now)

    def to_json(self) -> Dict[str, Any]:
        return {
            'records': self.records,
            'file_path': self.file_path,
            'file_hash': self.file_hash,
            'last_updated': self.last_updated.isoformat(),
            'last_accessed': self.last_accessed.isoformat(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'DataCacheEntry':
        return cls(
            records=data['records'],
            file_path=data['file_path'],
            file_hash=data['file_hash'],
            last_updated=datetime.fromisoformat(data['last_updated']),
            last_accessed=datetime.fromisoformat(data['last_accessed']),
        )


def file_fingerprint(file_path: str) -> str:
    """MD5 of the file contents, or an empty string when it cannot be read."""
    try:
        return hashlib.md5(Path(file_path).read_bytes()).hexdigest()
    except OSError as e:
        logger.error(f"Cannot fingerprint {file_path}: {e}")
        return ""


class DataManager:
    """
    Loads playlists and vendors and answers candidate lookups for the allocator.

    A cache entry is reused while its sheet has the same fingerprint and the
    entry is younger than the TTL.
    """

    def __init__(self, playlist_file: str = "playlists.xlsx", vendor_file: str = "vendors.xlsx",
                 cache_dir: str = ".cache", cache_ttl_hours: int = 24):
        """
        Initialize the DataManager.

        Args:
            playlist_file: Playlist sheet (.xlsx, .xls or .csv)
            vendor_file: Vendor sheet (.xlsx, .xls or .csv)
            cache_dir: Where parsed sheets are mirrored as JSON
            cache_ttl_hours: Maximum age of a cache entry
        """
        self.playlist_file = playlist_file
        self.vendor_file = vendor_file
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.cache_ttl = timedelta(hours=cache_ttl_hours)

        self._caches: Dict[str, Optional[DataCacheEntry]] = {source: None for source in SOURCES}

    def _source_file(self, source: str) -> str:
        return self.playlist_file if source == 'playlist' else self.vendor_file

    def _cache_path(self, source: str) -> Path:
        return self.cache_dir / f"{source}_cache.json"

    def _write_cache(self, source: str, entry: DataCacheEntry):
        try:
            with open(self._cache_path(source), 'w') as f:
                json.dump(entry.to_json(), f, indent=2, default=str)
        except OSError as e:
            logger.error(f"Could not write {source} cache: {e}")

    def _read_cache(self, source: str) -> Optional[DataCacheEntry]:
        path = self._cache_path(source)
        if not path.exists():
            return None

        try:
            with open(path, 'r') as f:
                return DataCacheEntry.from_json(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Ignoring unreadable {source} cache: {e}")
            return None

    def _is_current(self, entry: DataCacheEntry) -> bool:
        if not Path(entry.file_path).exists():
            reason = "sheet removed"
        elif file_fingerprint(entry.file_path) != entry.file_hash:
            reason = "sheet changed"
        elif datetime.now() - entry.last_updated > self.cache_ttl:
            reason = "cache expired"
        else:
            return True

        logger.info(f"Cache for {entry.file_path} is stale ({reason})")
        return False

    def _load_records(self, source: str, file_path: str,
                      parser_cls: Type[SheetParser]) -> List[Dict[str, Any]]:
        """
        Rows for a sheet from memory, then disk, then a fresh parse.

        Raises:
            FileNotFoundError: If the sheet file is not found
            ValueError: If the sheet is malformed
        """
        for lookup in (lambda: self._caches[source], lambda: self._read_cache(source)):
            entry = lookup()
            if entry is not None and entry.file_path == file_path and self._is_current(entry):
                entry.last_accessed = datetime.now()
                self._caches[source] = entry
                return entry.records

        logger.info(f"Parsing {source} sheet {file_path}")
        records = parser_cls(file_path).parse_records()

        entry = DataCacheEntry(records=records, file_path=file_path, file_hash=file_fingerprint(file_path))
        self._caches[source] = entry
        self._write_cache(source, entry)
        return records

    def load_playlists(self, file_path: Optional[str] = None) -> List[Playlist]:
        records = self._load_records('playlist', file_path or self.playlist_file, PlaylistSheetParser)
        return [Playlist(**record) for record in records]

    def load_vendors(self, file_path: Optional[str] = None) -> List[Vendor]:
        records = self._load_records('vendor', file_path or self.vendor_file, VendorSheetParser)
        return [Vendor(**record) for record in records]

    def get_vendor_map(self, active_only: bool = False) -> Dict[str, Vendor]:
        return {v.id: v for v in self.load_vendors() if v.is_active or not active_only}

    def get_candidates(self, genres: List[str]) -> Tuple[List[Playlist], Dict[str, Vendor]]:
        """
        Get playlists matching any of the genres, with their active vendors.

        Only the first MAX_MATCHED_GENRES tags of a playlist are compared.

        Args:
            genres: Requested genre tags; matching is case-insensitive

        Returns:
            Tuple of (matching playlists, active vendors keyed by id)
        """
        wanted = {g.strip().lower() for g in genres if g and g.strip()}
        vendors = self.get_vendor_map(active_only=True)

        playlists = [
            p for p in self.load_playlists()
            if p.vendor_id in vendors and wanted.intersection(g.lower() for g in p.genres[:MAX_MATCHED_GENRES])
        ]

        logger.info(f"Found {len(playlists)} candidate playlists across {len(vendors)} active vendors")
        return playlists, vendors

    def get_vendor_playlists(self, vendor_id: str) -> List[Playlist]:
        return [p for p in self.load_playlists() if p.vendor_id == vendor_id]

    def get_available_genres(self) -> List[str]:
        """Sorted list of every genre tagged on at least one playlist."""
        genres = set()
        for playlist in self.load_playlists():
            genres.update(playlist.genres)
        return sorted(genres)

    def _source_status(self, source: str) -> Dict[str, Any]:
        file_path = self._source_file(source)
        entry = self._caches[source]
        status = {
            'file_exists': Path(file_path).exists(),
            'last_updated': entry.last_updated.isoformat() if entry else None,
            'cache_valid': False,
            'recommendations': [],
        }

        if not status['file_exists']:
            status['status'] = 'missing'
            status['recommendations'].append(f"Upload the {source} sheet")
        elif entry is None:
            status['status'] = 'not_loaded'
            status['recommendations'].append(f"Load the {source} sheet")
        elif self._is_current(entry):
            status['status'] = 'fresh'
            status['cache_valid'] = True
        else:
            status['status'] = 'stale'
            status['recommendations'].append(f"Reload the {source} sheet")

        return status

    def validate_data_freshness(self) -> Dict[str, Any]:
        """
        Report per-sheet status (missing, not_loaded, fresh or stale) and an overall verdict.

        The overall status is 'ready' when both sheets are fresh, 'incomplete'
        when one is missing and 'needs_refresh' otherwise.
        """
        result: Dict[str, Any] = {source: self._source_status(source) for source in SOURCES}
        statuses = {result[source]['status'] for source in SOURCES}

        if statuses == {'fresh'}:
            result['overall_status'] = 'ready'
        elif 'missing' in statuses:
            result['overall_status'] = 'incomplete'
        else:
            result['overall_status'] = 'needs_refresh'
        return result

    def clear_cache(self):
        self._caches = {source: None for source in SOURCES}
        for source in SOURCES:
            self._cache_path(source).unlink(missing_ok=True)
        logger.info("Playlist and vendor caches cleared")

    def get_cache_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            source: {
                'in_memory': entry is not None,
                'file_path': entry.file_path if entry else None,
                'last_accessed': entry.last_accessed.isoformat() if entry else None,
                'record_count': len(entry.records) if entry else 0,
            }
            for source, entry in self._caches.items()
        }
        stats['cache_dir_size'] = sum(p.stat().st_size for p in self.cache_dir.iterdir() if p.is_file())
        return stats
