"""
Stream allocation across playlists for campaign building.

This module decides how many streams each candidate playlist receives so the
total approaches a campaign's stream goal without exceeding playlist capacity
or vendor caps.
"""

import logging
from typing import Dict, List, Optional, Iterable, Set, Any

from models.data_models import (
    AllocationInput, AllocationPlan, AllocationResult, CandidateScore, Playlist, Vendor,
    MAX_MATCHED_GENRES
)

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Parent genre -> sub-genres treated as related when scoring relevance
GENRE_RELATIONS: Dict[str, List[str]] = {
    'electronic': ['edm', 'house', 'techno', 'dubstep', 'synthwave', 'future-bass'],
    'indie': ['indie-rock', 'indie-pop', 'bedroom-pop', 'alt-rock'],
    'hip-hop': ['rap', 'trap', 'underground', 'boom-bap'],
    'rock': ['indie-rock', 'alt-rock', 'punk', 'metal'],
    'pop': ['indie-pop', 'synth-pop', 'electro-pop'],
    'r&b': ['soul', 'neo-soul', 'funk'],
    'folk': ['indie-folk', 'acoustic', 'singer-songwriter'],
}


class InvalidInput(ValueError):
    """Raised when an allocation request is malformed."""
    pass


def parse_genre_filter(sub_genre: Optional[str]) -> List[str]:
    """
    Split a genre filter into normalized tags.

    Accepts a single genre or a comma-separated list ("pop, indie").
    Order is preserved and duplicates are dropped.
    """
    if not sub_genre:
        return []

    genres = []
    for part in str(sub_genre).split(','):
        genre = part.strip().lower()
        if genre and genre not in genres:
            genres.append(genre)
    return genres


def _playlist_genres(playlist: Playlist) -> List[str]:
    return [str(g).strip().lower() for g in playlist.genres[:MAX_MATCHED_GENRES] if str(g).strip()]


def genre_relevance(playlist_genres: Iterable[str], campaign_genres: Iterable[str]) -> float:
    """
    Score how well a playlist's genres fit the campaign genres.

    1.0 for a direct match, 0.7 when a playlist genre is a sub-genre of a
    campaign genre, 0.6 for the reverse relation, 0.1 otherwise and 0 for a
    playlist with no genres.
    """
    playlist_genres = list(playlist_genres)
    campaign_genres = list(campaign_genres)
    if not playlist_genres:
        return 0.0

    best = 0.1
    for campaign_genre in campaign_genres:
        if campaign_genre in playlist_genres:
            return 1.0

        related = GENRE_RELATIONS.get(campaign_genre, [])
        if any(genre in related for genre in playlist_genres):
            best = max(best, 0.7)
            continue

        for genre in playlist_genres:
            if campaign_genre in GENRE_RELATIONS.get(genre, []):
                best = max(best, 0.6)

    return best


def build_vendor_caps(playlists: List[Playlist], vendors: Dict[str, Vendor],
                      duration_days: int) -> Dict[str, int]:
    """
    Derive default per-campaign vendor caps.

    Each active vendor's cap is the combined daily streams of its playlists
    times the campaign duration.
    """
    caps: Dict[str, int] = {}
    for vendor_id, vendor in vendors.items():
        if not vendor.is_active:
            continue
        daily = sum(p.avg_daily_streams or 0 for p in playlists if p.vendor_id == vendor_id)
        caps[vendor_id] = int(daily * duration_days)
    return caps


def calculate_projections(allocations: List[AllocationResult],
                          playlists: List[Playlist]) -> Dict[str, Any]:
    """
    Summarize an allocation against the playlists it references.

    Allocations pointing at unknown playlists are ignored.
    """
    playlist_map = {p.id: p for p in playlists}

    total_streams = 0
    total_daily_streams = 0
    vendor_breakdown: Dict[str, int] = {}

    for allocation in allocations:
        playlist = playlist_map.get(allocation.playlist_id)
        if playlist is None:
            continue
        total_streams += allocation.allocation
        total_daily_streams += playlist.avg_daily_streams
        vendor_breakdown[allocation.vendor_id] = (
            vendor_breakdown.get(allocation.vendor_id, 0) + allocation.allocation
        )

    return {
        'total_streams': total_streams,
        'total_daily_streams': total_daily_streams,
        'vendor_breakdown': vendor_breakdown,
        'playlist_count': len(allocations),
    }


class StreamAllocator:
    """
    Greedy capacity-constrained stream allocator.

    Candidates are filled in a fixed order: most matched genres first, then
    largest ceiling, then playlist id. Each candidate receives the lesser of
    its ceiling, the unmet goal and its vendor's remaining cap.
    """

    def allocate(self, allocation_input: AllocationInput) -> AllocationPlan:
        """
        Allocate a campaign's stream goal across eligible playlists.

        Args:
            allocation_input: Playlists, goal, vendor caps, genre filter and duration

        Returns:
            AllocationPlan with the non-zero allocations and the unfilled remainder

        Raises:
            InvalidInput: If the goal, duration or capacities are malformed
        """
        self._validate_input(allocation_input)

        goal = allocation_input.goal
        duration_days = allocation_input.duration_days

        try:
            candidates = self._score_candidates(allocation_input)

            if not candidates:
                logger.warning(
                    f"No eligible playlists for genre filter '{allocation_input.sub_genre}'; "
                    f"{goal:,} streams unfilled"
                )
                return AllocationPlan(goal=goal, allocations=[], unfilled=goal, candidates=[])

            vendor_remaining = self._vendor_ceilings(allocation_input)
            remaining_goal = goal
            allocations: List[AllocationResult] = []

            for candidate in candidates:
                if remaining_goal <= 0:
                    break

                playlist = candidate.playlist
                playlist_capacity = playlist.avg_daily_streams * duration_days
                amount = min(playlist_capacity, remaining_goal, vendor_remaining.get(playlist.vendor_id, 0))

                if amount > 0:
                    allocations.append(AllocationResult(
                        playlist_id=playlist.id,
                        vendor_id=playlist.vendor_id,
                        allocation=amount
                    ))
                    remaining_goal -= amount
                    vendor_remaining[playlist.vendor_id] -= amount

            plan = AllocationPlan(
                goal=goal,
                allocations=allocations,
                unfilled=remaining_goal,
                candidates=candidates
            )

            logger.info(
                f"Allocated {plan.projected_streams:,}/{goal:,} streams across "
                f"{len(allocations)} playlists ({plan.unfilled:,} unfilled)"
            )
            return plan

        except Exception as e:
            logger.error(f"Error allocating streams: {str(e)}")
            raise

    def _validate_input(self, allocation_input: AllocationInput):
        goal = allocation_input.goal
        duration_days = allocation_input.duration_days

        if not _is_int(goal) or goal <= 0:
            raise InvalidInput(f"Stream goal must be a positive integer, got {goal!r}")
        if not _is_int(duration_days) or duration_days <= 0:
            raise InvalidInput(f"Duration must be a positive number of days, got {duration_days!r}")

        seen_ids: Set[str] = set()
        for playlist in allocation_input.playlists:
            if playlist.id in seen_ids:
                raise InvalidInput(f"Duplicate playlist id {playlist.id!r} in candidate pool")
            seen_ids.add(playlist.id)
            if not _is_int(playlist.avg_daily_streams) or playlist.avg_daily_streams < 0:
                raise InvalidInput(
                    f"Playlist {playlist.id} has invalid daily streams: {playlist.avg_daily_streams!r}"
                )

        for vendor_id, cap in allocation_input.vendor_caps.items():
            if not _is_int(cap) or cap < 0:
                raise InvalidInput(f"Vendor {vendor_id} has invalid cap: {cap!r}")

    def _vendor_ceilings(self, allocation_input: AllocationInput) -> Dict[str, int]:
        """Per-vendor ceiling: negotiated cap bounded by daily capacity over the campaign."""
        ceilings: Dict[str, int] = {}
        vendors = allocation_input.vendors

        vendor_ids = {p.vendor_id for p in allocation_input.playlists}
        for vendor_id in vendor_ids:
            cap = allocation_input.vendor_caps.get(vendor_id, 0)
            if vendors is not None and vendor_id in vendors:
                cap = min(cap, vendors[vendor_id].max_daily_streams * allocation_input.duration_days)
            ceilings[vendor_id] = max(cap, 0)

        return ceilings

    def _is_vendor_eligible(self, vendor_id: str, allocation_input: AllocationInput) -> bool:
        vendors = allocation_input.vendors
        if vendors is None:
            return True

        vendor = vendors.get(vendor_id)
        if vendor is None or not vendor.is_active:
            return False

        active_campaigns = allocation_input.active_campaign_counts.get(vendor_id, 0)
        if active_campaigns >= vendor.max_concurrent_campaigns:
            logger.info(f"Vendor {vendor_id} at concurrent campaign limit ({active_campaigns})")
            return False

        return True

    def _score_candidates(self, allocation_input: AllocationInput) -> List[CandidateScore]:
        """Filter the pool to eligible playlists and return them in fill order."""
        requested_list = parse_genre_filter(allocation_input.sub_genre)
        requested: Set[str] = set(requested_list)
        if not requested:
            return []

        vendor_ceilings = self._vendor_ceilings(allocation_input)
        eligible: List[Playlist] = []
        vendor_eligibility: Dict[str, bool] = {}

        for playlist in allocation_input.playlists:
            if not requested.intersection(_playlist_genres(playlist)):
                continue
            if playlist.vendor_id not in vendor_eligibility:
                vendor_eligibility[playlist.vendor_id] = self._is_vendor_eligible(
                    playlist.vendor_id, allocation_input
                )
            if vendor_eligibility[playlist.vendor_id]:
                eligible.append(playlist)

        if not eligible:
            return []

        max_streams = max(p.avg_daily_streams for p in eligible)
        candidates = []

        for playlist in eligible:
            genres = _playlist_genres(playlist)
            relevance = genre_relevance(genres, requested_list)
            stream_score = min(playlist.avg_daily_streams / max_streams, 1.0) if max_streams > 0 else 0.0
            ceiling = min(
                playlist.avg_daily_streams * allocation_input.duration_days,
                vendor_ceilings.get(playlist.vendor_id, 0)
            )

            candidates.append(CandidateScore(
                playlist=playlist,
                genre_overlap=len(requested.intersection(genres)),
                genre_relevance=relevance,
                stream_score=stream_score,
                relevance_score=relevance * 0.5 + stream_score * 0.5,
                ceiling=ceiling
            ))

        candidates.sort(key=lambda c: (-c.genre_overlap, -c.ceiling, c.playlist.id))
        return candidates


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


_default_allocator = StreamAllocator()


def allocate_streams(allocation_input: AllocationInput) -> AllocationPlan:
    """Allocate with the default allocator."""
    return _default_allocator.allocate(allocation_input)
