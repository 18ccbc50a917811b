"""
File-backed campaign store with an append-only weekly update log.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any

from models.data_models import Campaign, CampaignStatus, UserContext, UserRole, WeeklyUpdate
from .records import (
    campaign_from_record, campaign_to_record, weekly_update_from_record, weekly_update_to_record
)

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


ACTIVE_STATUSES = (CampaignStatus.ACTIVE,)

# Fields a caller may change through update_campaign
UPDATABLE_FIELDS = {
    'name', 'client', 'stream_goal', 'remaining_streams', 'budget', 'sub_genre', 'music_genres',
    'duration_days', 'start_date', 'status', 'selected_playlists', 'vendor_allocations', 'totals',
    'salesperson', 'notes',
}


class CampaignNotFound(KeyError):
    """Raised when a campaign id is not in the store."""
    pass


class CampaignRepository:
    """
    JSON file store for campaigns and weekly updates.

    Weekly updates are only ever appended; they never alter a campaign's
    allocation fields.
    """

    def __init__(self, store_path: str = "campaign_store.json"):
        """
        Initialize the repository.

        Args:
            store_path: Path of the JSON store file, created on first write
        """
        self.store_path = Path(store_path)

    def _read(self) -> Dict[str, Any]:
        if not self.store_path.exists():
            return {'campaigns': {}, 'weekly_updates': []}

        with open(self.store_path, 'r') as f:
            data = json.load(f)

        data.setdefault('campaigns', {})
        data.setdefault('weekly_updates', [])
        return data

    def _write(self, data: Dict[str, Any]):
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.store_path.with_suffix(self.store_path.suffix + '.tmp')

        with open(tmp_path, 'w') as f:
            json.dump(data, f, indent=2, default=str)
        os.replace(tmp_path, self.store_path)

    def create_campaign(self, campaign: Campaign) -> Campaign:
        data = self._read()
        if campaign.id in data['campaigns']:
            raise ValueError(f"Campaign {campaign.id} already exists")

        data['campaigns'][campaign.id] = campaign_to_record(campaign)
        self._write(data)

        logger.info(f"Created campaign {campaign.id} ({campaign.name})")
        return campaign

    def get_campaign(self, campaign_id: str) -> Campaign:
        data = self._read()
        record = data['campaigns'].get(campaign_id)
        if record is None:
            raise CampaignNotFound(campaign_id)
        return campaign_from_record(record)

    def update_campaign(self, campaign_id: str, fields: Dict[str, Any]) -> Campaign:
        """
        Apply a partial update to a stored campaign.

        Args:
            campaign_id: Campaign to update
            fields: Column values to overwrite

        Returns:
            The updated Campaign

        Raises:
            CampaignNotFound: If the campaign does not exist
            ValueError: If a field is not updatable
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        data = self._read()
        record = data['campaigns'].get(campaign_id)
        if record is None:
            raise CampaignNotFound(campaign_id)

        for key, value in fields.items():
            if isinstance(value, CampaignStatus):
                value = value.value
            elif hasattr(value, 'isoformat'):
                value = value.isoformat()
            record[key] = value
        record['updated_at'] = datetime.now().isoformat()

        data['campaigns'][campaign_id] = record
        self._write(data)

        logger.info(f"Updated campaign {campaign_id}: {', '.join(sorted(fields))}")
        return campaign_from_record(record)

    def list_campaigns(self, statuses: Optional[List[CampaignStatus]] = None,
                       context: Optional[UserContext] = None) -> List[Campaign]:
        """
        List campaigns, newest first, optionally filtered by status and scoped to a user.

        Salespeople see their own campaigns; vendors see campaigns holding an
        allocation for one of their vendor ids; admins and managers see all.
        """
        campaigns = [campaign_from_record(r) for r in self._read()['campaigns'].values()]

        if statuses:
            campaigns = [c for c in campaigns if c.status in statuses]

        if context is not None:
            if context.role == UserRole.SALESPERSON:
                campaigns = [c for c in campaigns if c.salesperson == context.email]
            elif context.role == UserRole.VENDOR:
                vendor_ids = set(context.vendor_ids)
                campaigns = [c for c in campaigns if vendor_ids.intersection(c.vendor_allocations)]

        return sorted(campaigns, key=lambda c: c.created_at, reverse=True)

    def active_campaign_counts(self, exclude_campaign_id: Optional[str] = None) -> Dict[str, int]:
        """Number of active campaigns each vendor currently holds an allocation on."""
        counts: Dict[str, int] = {}
        for campaign in self.list_campaigns(statuses=list(ACTIVE_STATUSES)):
            if campaign.id == exclude_campaign_id:
                continue
            for vendor_id in campaign.vendor_allocations:
                counts[vendor_id] = counts.get(vendor_id, 0) + 1
        return counts

    def append_weekly_update(self, update: WeeklyUpdate) -> WeeklyUpdate:
        data = self._read()
        if update.campaign_id not in data['campaigns']:
            raise CampaignNotFound(update.campaign_id)

        data['weekly_updates'].append(weekly_update_to_record(update))
        self._write(data)

        logger.info(f"Recorded weekly update for campaign {update.campaign_id}: {update.streams:,} streams")
        return update

    def get_weekly_updates(self, campaign_id: str) -> List[WeeklyUpdate]:
        return [
            weekly_update_from_record(r) for r in self._read()['weekly_updates']
            if r.get('campaign_id') == campaign_id
        ]
