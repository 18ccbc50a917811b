"""
Campaign Controller - Orchestrates the campaign building workflow.

This module ties the playlist directory, the stream allocator and the
campaign store together: it builds allocations for a campaign, persists
them, records weekly performance updates and moves campaigns through their
lifecycle.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Any, Tuple

from models.data_models import (
    AllocationInput, AllocationPlan, Campaign, CampaignStatus, WeeklyUpdate
)
from config.settings import AppConfig, config_manager
from data.manager import DataManager
from data.repository import CampaignRepository, CampaignNotFound
from data.records import allocation_payload
from .stream_allocator import StreamAllocator, build_vendor_caps, parse_genre_filter
from .allocation_validator import AllocationValidator, ValidationError
from .campaign_metrics import commission_amount, progress_percentage
from .error_handler import error_handler, RetryConfig

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    CampaignStatus.DRAFT: {CampaignStatus.OPERATOR_REVIEW_COMPLETE, CampaignStatus.BUILT,
                           CampaignStatus.CANCELLED},
    CampaignStatus.OPERATOR_REVIEW_COMPLETE: {CampaignStatus.BUILT, CampaignStatus.CANCELLED},
    CampaignStatus.BUILT: {CampaignStatus.DRAFT, CampaignStatus.UNRELEASED, CampaignStatus.ACTIVE,
                           CampaignStatus.CANCELLED},
    CampaignStatus.UNRELEASED: {CampaignStatus.ACTIVE, CampaignStatus.CANCELLED},
    CampaignStatus.ACTIVE: {CampaignStatus.PAUSED, CampaignStatus.COMPLETED, CampaignStatus.CANCELLED},
    CampaignStatus.PAUSED: {CampaignStatus.ACTIVE, CampaignStatus.CANCELLED},
    CampaignStatus.COMPLETED: set(),
    CampaignStatus.CANCELLED: set(),
}

# Allocations may only be (re)computed before delivery starts
EDITABLE_STATUSES = (CampaignStatus.DRAFT, CampaignStatus.OPERATOR_REVIEW_COMPLETE,
                     CampaignStatus.BUILT, CampaignStatus.UNRELEASED)

SAVE_STATUSES = (CampaignStatus.BUILT, CampaignStatus.UNRELEASED, CampaignStatus.ACTIVE)


class CampaignController:
    """
    Main controller for the campaign building workflow.

    Build steps report failures as (success, result, message, notification)
    tuples; save, update and transition steps raise.
    """

    def __init__(self, data_manager: Optional[DataManager] = None,
                 repository: Optional[CampaignRepository] = None,
                 allocator: Optional[StreamAllocator] = None,
                 config: Optional[AppConfig] = None):
        """
        Initialize the campaign controller.

        Args:
            data_manager: Playlist and vendor directory; built from config if omitted
            repository: Campaign store; built from config if omitted
            allocator: Stream allocator to use
            config: Application config; loaded from the config manager if omitted
        """
        self.config = config or config_manager.load_config()
        self.data_manager = data_manager or DataManager(
            playlist_file=self.config.playlist_file,
            vendor_file=self.config.vendor_file,
            cache_dir=self.config.cache_dir,
            cache_ttl_hours=self.config.cache_timeout_hours
        )
        self.repository = repository or CampaignRepository(self.config.campaign_store_path)
        self.allocator = allocator or StreamAllocator()
        self.validator = AllocationValidator()

        logger.info("CampaignController initialized")

    def validate_inputs(self, campaign: Campaign) -> Tuple[bool, str]:
        """
        Validate campaign fields needed to build an allocation.

        Args:
            campaign: Campaign to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not campaign.name or not campaign.name.strip():
            return False, "Campaign name is required"

        if not isinstance(campaign.stream_goal, int) or campaign.stream_goal <= 0:
            return False, "Stream goal must be a positive number of streams"

        if not isinstance(campaign.duration_days, int) or campaign.duration_days <= 0:
            return False, "Campaign duration must be at least one day"

        if not self._campaign_genres(campaign):
            return False, "At least one genre is required to match playlists"

        if campaign.budget is not None and campaign.budget < 0:
            return False, "Budget cannot be negative"

        return True, ""

    def _campaign_genres(self, campaign: Campaign) -> List[str]:
        genres = parse_genre_filter(campaign.sub_genre)
        for genre in campaign.music_genres:
            genre = genre.strip().lower()
            if genre and genre not in genres:
                genres.append(genre)
        return genres

    def build_allocation(self, campaign: Campaign,
                         vendor_caps: Optional[Dict[str, int]] = None
                         ) -> Tuple[bool, Optional[AllocationPlan], str, Optional[Dict[str, Any]]]:
        """
        Compute a stream allocation for a campaign without persisting it.

        Args:
            campaign: Campaign with goal, genres and duration
            vendor_caps: Negotiated per-vendor caps; derived from playlist capacity if omitted

        Returns:
            Tuple of (success, AllocationPlan, status message, user_notification)
        """
        logger.info(f"Building allocation for campaign {campaign.id} ({campaign.name})")

        is_valid, message = self.validate_inputs(campaign)
        if not is_valid:
            error_info = error_handler.handle_validation_error(ValueError(message), "campaign build")
            return False, None, message, error_handler.create_user_notification(error_info)

        genres = self._campaign_genres(campaign)

        success, candidates, error_info = error_handler.retry_with_backoff(
            lambda: self.data_manager.get_candidates(genres),
            RetryConfig(max_attempts=self.config.retry_attempts, base_delay=1.0),
            "playlist directory"
        )
        if not success:
            error_handler.log_error(error_info, "Playlist directory")
            return False, None, error_info.user_message, error_handler.create_user_notification(error_info)

        playlists, vendors = candidates
        if vendor_caps is None:
            vendor_caps = build_vendor_caps(playlists, vendors, campaign.duration_days)

        allocation_input = AllocationInput(
            playlists=playlists,
            goal=campaign.stream_goal,
            vendor_caps=vendor_caps,
            sub_genre=", ".join(genres),
            duration_days=campaign.duration_days,
            vendors=vendors,
            active_campaign_counts=self.repository.active_campaign_counts(exclude_campaign_id=campaign.id)
        )

        try:
            plan = self.allocator.allocate(allocation_input)
            self.validator.ensure_valid(plan, allocation_input)
        except Exception as e:
            error_info = error_handler.classify_error(e, "stream allocation")
            error_handler.log_error(error_info, "Stream allocation")
            return False, None, error_info.user_message, error_handler.create_user_notification(error_info)

        if not plan.allocations:
            notification = {
                'type': 'warning',
                'title': 'No Matching Playlists',
                'message': f"No playlists match {', '.join(genres)}.",
                'action': 'Loosen the genre filter or raise vendor caps.',
            }
            return True, plan, "No matching playlists", notification

        if plan.unfilled > 0:
            notification = {
                'type': 'warning',
                'title': 'Partial Allocation',
                'message': f"{plan.unfilled:,} of {plan.goal:,} streams could not be placed.",
                'action': 'Loosen the genre filter or vendor caps, or accept an under-goal plan.',
            }
            return True, plan, f"Allocated {plan.projected_streams:,} of {plan.goal:,} streams", notification

        return True, plan, f"Allocated {plan.projected_streams:,} streams across {len(plan.allocations)} playlists", None

    def save_campaign(self, campaign: Campaign, plan: AllocationPlan,
                      status: CampaignStatus = CampaignStatus.BUILT) -> Campaign:
        """
        Persist a campaign together with its allocation.

        Args:
            campaign: Campaign to create or update
            plan: Allocation computed for the campaign
            status: Status to save with; built, unreleased or active

        Returns:
            The stored Campaign

        Raises:
            ValueError: If the status is not a save status or the campaign is past editing
        """
        if status not in SAVE_STATUSES:
            raise ValueError(f"Cannot save a campaign as {status.value}")

        payload = allocation_payload(plan, [c.playlist for c in plan.candidates])
        payload['status'] = status

        try:
            existing = self.repository.get_campaign(campaign.id)
        except CampaignNotFound:
            existing = None

        if existing is None:
            campaign.status = status
            campaign.selected_playlists = payload['selected_playlists']
            campaign.vendor_allocations = payload['vendor_allocations']
            campaign.totals = payload['totals']
            stored = self.repository.create_campaign(campaign)
        else:
            if existing.status not in EDITABLE_STATUSES:
                raise ValueError(f"Campaign {campaign.id} is {existing.status.value}; allocation is locked")
            if status != existing.status and status not in ALLOWED_TRANSITIONS[existing.status]:
                raise ValueError(f"Cannot move campaign from {existing.status.value} to {status.value}")

            payload.update({
                'name': campaign.name,
                'client': campaign.client,
                'stream_goal': campaign.stream_goal,
                'budget': campaign.budget,
                'sub_genre': campaign.sub_genre,
                'music_genres': campaign.music_genres,
                'duration_days': campaign.duration_days,
                'start_date': campaign.start_date,
            })
            stored = self.repository.update_campaign(campaign.id, payload)

        result = self.validator.validate_campaign_totals(stored)
        if not result.is_valid:
            raise ValidationError("; ".join(result.errors))

        logger.info(
            f"Saved campaign {stored.id} as {status.value} with "
            f"{stored.totals['projected_streams']:,} projected streams"
        )
        return stored

    def build_and_save(self, campaign: Campaign, status: CampaignStatus = CampaignStatus.BUILT,
                       vendor_caps: Optional[Dict[str, int]] = None
                       ) -> Tuple[bool, Optional[Campaign], str, Optional[Dict[str, Any]]]:
        success, plan, message, notification = self.build_allocation(campaign, vendor_caps)
        if not success:
            return False, None, message, notification

        try:
            stored = self.save_campaign(campaign, plan, status)
        except Exception as e:
            error_info = error_handler.classify_error(e, "campaign save")
            error_handler.log_error(error_info, "Campaign save")
            return False, None, error_info.user_message, error_handler.create_user_notification(error_info)

        return True, stored, message, notification

    def record_weekly_update(self, campaign_id: str, streams: int,
                             remaining_streams: Optional[int] = None, notes: str = "",
                             imported_on: Optional[date] = None) -> WeeklyUpdate:
        """
        Append an observed-performance entry for a campaign.

        The allocation is never touched; when remaining_streams is given the
        campaign's remaining count is updated alongside.

        Raises:
            CampaignNotFound: If the campaign does not exist
            ValueError: If stream counts are negative
        """
        if streams < 0:
            raise ValueError(f"Weekly streams cannot be negative: {streams}")
        if remaining_streams is not None and remaining_streams < 0:
            raise ValueError(f"Remaining streams cannot be negative: {remaining_streams}")

        update = WeeklyUpdate(
            campaign_id=campaign_id,
            streams=streams,
            imported_on=imported_on or date.today(),
            notes=notes,
            remaining_streams=remaining_streams
        )
        self.repository.append_weekly_update(update)

        if remaining_streams is not None:
            self.repository.update_campaign(campaign_id, {'remaining_streams': remaining_streams})

        return update

    def transition_status(self, campaign_id: str, new_status: CampaignStatus) -> Campaign:
        """
        Move a campaign to a new lifecycle status.

        Raises:
            CampaignNotFound: If the campaign does not exist
            ValueError: If the transition is not allowed
        """
        campaign = self.repository.get_campaign(campaign_id)
        if new_status == campaign.status:
            return campaign

        if new_status not in ALLOWED_TRANSITIONS[campaign.status]:
            raise ValueError(f"Cannot move campaign from {campaign.status.value} to {new_status.value}")

        if new_status in (CampaignStatus.BUILT, CampaignStatus.UNRELEASED, CampaignStatus.ACTIVE) \
                and not campaign.vendor_allocations:
            raise ValueError(f"Campaign {campaign_id} has no allocation to {new_status.value}")

        logger.info(f"Campaign {campaign_id}: {campaign.status.value} -> {new_status.value}")
        return self.repository.update_campaign(campaign_id, {'status': new_status})

    def campaign_summary(self, campaign_id: str) -> Dict[str, Any]:
        """Stored allocation, delivery progress and commission for one campaign."""
        campaign = self.repository.get_campaign(campaign_id)
        updates = self.repository.get_weekly_updates(campaign_id)
        totals_check = self.validator.validate_campaign_totals(campaign)

        return {
            'campaign_id': campaign.id,
            'name': campaign.name,
            'status': campaign.status.value,
            'stream_goal': campaign.stream_goal,
            'projected_streams': campaign.totals.get('projected_streams', 0),
            'remaining_streams': campaign.remaining_streams,
            'progress_percentage': progress_percentage(
                campaign.stream_goal, campaign.remaining_streams, clamp=self.config.clamp_progress
            ),
            'commission_amount': commission_amount(campaign.budget, self.config.commission_rate),
            'weekly_streams_total': sum(u.streams for u in updates),
            'weekly_update_count': len(updates),
            'vendor_count': len(campaign.vendor_allocations),
            'playlist_count': len(campaign.selected_playlists),
            'totals_consistent': totals_check.is_valid,
        }

    def get_system_status(self) -> Dict[str, Any]:
        """
        Get current status of data and error tracking.

        Returns:
            Dictionary with system status information
        """
        return {
            'data_status': self.data_manager.validate_data_freshness(),
            'cache_stats': self.data_manager.get_cache_stats(),
            'error_statistics': error_handler.get_error_statistics(),
        }
