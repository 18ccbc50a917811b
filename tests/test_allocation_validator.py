"""
Unit tests for the allocation validator.
"""

import unittest

from models.data_models import (
    AllocationInput, AllocationResult, Campaign, Playlist, Vendor
)
from business_logic.allocation_validator import (
    AllocationValidator, ValidationError, ValidationSeverity
)
from business_logic.stream_allocator import StreamAllocator


class TestAllocationValidator(unittest.TestCase):
    """Test cases for AllocationValidator."""

    def setUp(self):
        self.validator = AllocationValidator()
        self.playlists = [
            Playlist(id='P1', vendor_id='V1', name='Morning Pop', genres=['pop'], avg_daily_streams=1000),
            Playlist(id='P2', vendor_id='V2', name='Late Pop', genres=['pop'], avg_daily_streams=500),
        ]
        self.allocation_input = AllocationInput(
            playlists=self.playlists,
            goal=10000,
            vendor_caps={'V1': 6000, 'V2': 10000},
            sub_genre='pop',
            duration_days=7
        )

    def test_allocator_output_is_valid(self):
        plan = StreamAllocator().allocate(self.allocation_input)
        result = self.validator.validate(plan, self.allocation_input)

        self.assertTrue(result.is_valid)
        self.assertEqual(result.total_errors, 0)
        self.validator.ensure_valid(plan, self.allocation_input)

    def test_shortfall_is_warning(self):
        allocations = [AllocationResult('P1', 'V1', 5000)]
        result = self.validator.validate(allocations, self.allocation_input)

        self.assertTrue(result.is_valid)
        self.assertEqual(result.total_warnings, 1)
        self.assertEqual(result.issues[0].severity, ValidationSeverity.WARNING)

    def test_capacity_exceeded(self):
        allocations = [AllocationResult('P2', 'V2', 4000)]
        result = self.validator.validate(allocations, self.allocation_input)

        self.assertFalse(result.is_valid)
        self.assertTrue(any('exceeds capacity' in e for e in result.errors))

    def test_split_rows_share_playlist_capacity(self):
        self.allocation_input.vendor_caps['V1'] = 20000
        allocations = [AllocationResult('P1', 'V1', 4000), AllocationResult('P1', 'V1', 4000)]
        result = self.validator.validate(allocations, self.allocation_input)

        self.assertFalse(result.is_valid)
        capacity_errors = [e for e in result.errors if 'exceeds capacity' in e]
        self.assertEqual(capacity_errors, ["Allocation exceeds capacity for playlist Morning Pop: 8,000 > 7,000"])

        result = self.validator.validate(allocations[:1], self.allocation_input)
        self.assertTrue(result.is_valid)

    def test_vendor_cap_exceeded(self):
        allocations = [AllocationResult('P1', 'V1', 7000)]
        result = self.validator.validate(allocations, self.allocation_input)

        self.assertFalse(result.is_valid)
        self.assertTrue(any('Vendor allocation exceeds cap' in e for e in result.errors))

    def test_vendor_daily_capacity_bounds_cap(self):
        self.allocation_input.vendors = {'V1': Vendor(id='V1', name='One', max_daily_streams=100)}
        result = self.validator.validate([AllocationResult('P1', 'V1', 1000)], self.allocation_input)
        self.assertFalse(result.is_valid)

    def test_goal_exceeded(self):
        self.allocation_input.goal = 1000
        allocations = [AllocationResult('P1', 'V1', 1500)]
        result = self.validator.validate(allocations, self.allocation_input)

        self.assertFalse(result.is_valid)
        self.assertTrue(any('exceeds goal' in e for e in result.errors))

    def test_unknown_playlist(self):
        result = self.validator.validate([AllocationResult('P9', 'V1', 10)], self.allocation_input)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.issues[0].playlist_id, 'P9')

    def test_negative_allocation(self):
        result = self.validator.validate([AllocationResult('P1', 'V1', -5)], self.allocation_input)
        self.assertFalse(result.is_valid)

    def test_vendor_mismatch(self):
        result = self.validator.validate([AllocationResult('P1', 'V2', 100)], self.allocation_input)
        self.assertFalse(result.is_valid)
        self.assertTrue(any('belongs to vendor V1' in e for e in result.errors))

    def test_ensure_valid_raises(self):
        with self.assertRaises(ValidationError):
            self.validator.ensure_valid([AllocationResult('P1', 'V1', 7000)], self.allocation_input)

    def test_campaign_totals(self):
        campaign = Campaign(
            id='C1', name='Launch', client='Label', stream_goal=5000, budget=100.0,
            sub_genre='pop', duration_days=7,
            vendor_allocations={'V1': {'allocated_streams': 3000}, 'V2': {'allocated_streams': 2000}},
            totals={'projected_streams': 5000}
        )
        self.assertTrue(self.validator.validate_campaign_totals(campaign).is_valid)

        campaign.totals['projected_streams'] = 4000
        result = self.validator.validate_campaign_totals(campaign)
        self.assertFalse(result.is_valid)
        self.assertEqual(result.issues[0].field, 'totals.projected_streams')

    def test_summary(self):
        result = self.validator.validate([AllocationResult('P1', 'V1', 8000)], self.allocation_input)
        summary = self.validator.get_validation_summary(result)

        self.assertIn("Validation Status: FAILED", summary)
        self.assertIn("[Playlist P1]", summary)
        self.assertIn("[Vendor V1]", summary)


if __name__ == '__main__':
    unittest.main()
