"""
Tests for the playlist and vendor DataManager.
"""

import os
import shutil
import tempfile
from unittest.mock import patch

import pandas as pd
import pytest

from data.manager import DataManager
from data.parsers import PlaylistSheetParser
from models.data_models import Playlist, Vendor


class TestDataManager:
    """Test DataManager loading, caching and candidate lookup."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.playlist_file = os.path.join(self.temp_dir, 'playlists.csv')
        self.vendor_file = os.path.join(self.temp_dir, 'vendors.csv')

        pd.DataFrame({
            'id': ['P1', 'P2', 'P3', 'P4'],
            'vendor_id': ['V1', 'V1', 'V2', 'V3'],
            'name': ['Morning Pop', 'Indie Nights', 'Trap Lab', 'Dormant Pop'],
            'genres': ['Pop, indie-pop', 'indie', 'hip-hop, trap', 'pop'],
            'avg_daily_streams': [10000, 5000, 8000, 3000],
        }).to_csv(self.playlist_file, index=False)

        pd.DataFrame({
            'id': ['V1', 'V2', 'V3'],
            'name': ['Alpha', 'Beta', 'Gamma'],
            'max_daily_streams': [20000, 15000, 5000],
            'is_active': ['yes', 'yes', 'no'],
        }).to_csv(self.vendor_file, index=False)

        self.manager = DataManager(
            playlist_file=self.playlist_file,
            vendor_file=self.vendor_file,
            cache_dir=os.path.join(self.temp_dir, 'cache')
        )

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_load_playlists(self):
        playlists = self.manager.load_playlists()

        assert len(playlists) == 4
        assert all(isinstance(p, Playlist) for p in playlists)
        assert playlists[0].genres == ['pop', 'indie-pop']

    def test_load_vendors(self):
        vendors = self.manager.load_vendors()

        assert [v.id for v in vendors] == ['V1', 'V2', 'V3']
        assert all(isinstance(v, Vendor) for v in vendors)
        assert vendors[2].is_active is False

    def test_vendor_map_active_only(self):
        assert set(self.manager.get_vendor_map()) == {'V1', 'V2', 'V3'}
        assert set(self.manager.get_vendor_map(active_only=True)) == {'V1', 'V2'}

    def test_get_candidates(self):
        playlists, vendors = self.manager.get_candidates(['POP', 'trap'])

        # P4 belongs to an inactive vendor
        assert [p.id for p in playlists] == ['P1', 'P3']
        assert set(vendors) == {'V1', 'V2'}

    def test_get_candidates_ignores_genres_past_fourth(self):
        pd.DataFrame({
            'id': ['P1', 'P2'],
            'vendor_id': ['V1', 'V2'],
            'name': ['Wide Mix', 'Jazz Corner'],
            'genres': ['pop, rock, indie, folk, jazz', 'soul, jazz'],
            'avg_daily_streams': [1000, 1000],
        }).to_csv(self.playlist_file, index=False)

        playlists, _ = self.manager.get_candidates(['jazz'])
        assert [p.id for p in playlists] == ['P2']

        playlists, _ = self.manager.get_candidates(['folk'])
        assert [p.id for p in playlists] == ['P1']

    def test_memory_cache_reused(self):
        self.manager.load_playlists()

        with patch.object(PlaylistSheetParser, 'parse_records') as mock_parse:
            self.manager.load_playlists()
            mock_parse.assert_not_called()

    def test_disk_cache_reused(self):
        self.manager.load_playlists()
        assert os.path.exists(os.path.join(self.temp_dir, 'cache', 'playlist_cache.json'))

        fresh = DataManager(
            playlist_file=self.playlist_file,
            vendor_file=self.vendor_file,
            cache_dir=os.path.join(self.temp_dir, 'cache')
        )
        with patch.object(PlaylistSheetParser, 'parse_records') as mock_parse:
            playlists = fresh.load_playlists()
            mock_parse.assert_not_called()
        assert len(playlists) == 4

    def test_modified_file_invalidates_cache(self):
        self.manager.load_playlists()

        pd.DataFrame({
            'id': ['P9'],
            'vendor_id': ['V1'],
            'name': ['Replacement'],
            'genres': ['pop'],
            'avg_daily_streams': [1],
        }).to_csv(self.playlist_file, index=False)

        assert [p.id for p in self.manager.load_playlists()] == ['P9']

    def test_missing_file(self):
        manager = DataManager(
            playlist_file=os.path.join(self.temp_dir, 'nope.csv'),
            cache_dir=os.path.join(self.temp_dir, 'cache2')
        )
        with pytest.raises(FileNotFoundError):
            manager.load_playlists()

    def test_available_genres(self):
        genres = self.manager.get_available_genres()
        assert genres == sorted(genres)
        assert 'trap' in genres

    def test_vendor_playlists(self):
        assert [p.id for p in self.manager.get_vendor_playlists('V1')] == ['P1', 'P2']

    def test_data_freshness(self):
        status = self.manager.validate_data_freshness()
        assert status['playlist']['status'] == 'not_loaded'
        assert status['overall_status'] == 'needs_refresh'

        self.manager.load_playlists()
        self.manager.load_vendors()
        status = self.manager.validate_data_freshness()
        assert status['playlist']['status'] == 'fresh'
        assert status['overall_status'] == 'ready'

    def test_data_freshness_missing_file(self):
        os.remove(self.vendor_file)
        status = self.manager.validate_data_freshness()
        assert status['vendor']['status'] == 'missing'
        assert status['overall_status'] == 'incomplete'

    def test_clear_cache(self):
        self.manager.load_playlists()
        self.manager.clear_cache()

        stats = self.manager.get_cache_stats()
        assert stats['playlist']['in_memory'] is False
        assert not os.path.exists(os.path.join(self.temp_dir, 'cache', 'playlist_cache.json'))

    def test_cache_stats(self):
        self.manager.load_vendors()
        stats = self.manager.get_cache_stats()

        assert stats['vendor']['record_count'] == 3
        assert stats['vendor']['in_memory'] is True
        assert stats['cache_dir_size'] > 0
