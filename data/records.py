"""
Conversion between stored campaign rows and typed models.

Stored rows may hold ``vendor_allocations`` as a mapping of vendor id to a
number or to a metadata object, or as a list of objects carrying
``vendor_id``; ``selected_playlists`` may mix plain ids and embedded playlist
objects. Everything is normalized here before it reaches business logic.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Any

from models.data_models import (
    AllocationPlan, AllocationResult, Campaign, CampaignStatus, Playlist, WeeklyUpdate
)

logger = logging.getLogger(__name__)


ALLOCATION_KEYS = ('allocated_streams', 'allocation', 'allocatedStreams')


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _allocation_amount(entry: Any) -> int:
    if isinstance(entry, dict):
        for key in ALLOCATION_KEYS:
            if entry.get(key) is not None:
                return _to_int(entry[key])
        return 0
    return _to_int(entry)


def normalize_vendor_allocations(raw: Any) -> Dict[str, Dict[str, Any]]:
    """
    Normalize stored vendor allocations to ``{vendor_id: {'allocated_streams': n, 'playlists': [...]}}``.

    Entries for the same vendor are summed; malformed entries are dropped
    with a warning.
    """
    if not raw:
        return {}

    if isinstance(raw, dict):
        items = []
        for vendor_id, entry in raw.items():
            if isinstance(entry, dict):
                items.append(dict(entry, vendor_id=vendor_id))
            else:
                items.append({'vendor_id': vendor_id, 'allocated_streams': entry})
    elif isinstance(raw, list):
        items = raw
    else:
        logger.warning(f"Ignoring vendor allocations of unexpected type {type(raw).__name__}")
        return {}

    normalized: Dict[str, Dict[str, Any]] = {}
    for item in items:
        if not isinstance(item, dict) or not item.get('vendor_id'):
            logger.warning(f"Dropping malformed vendor allocation entry: {item!r}")
            continue

        vendor_id = str(item['vendor_id'])
        entry = normalized.setdefault(vendor_id, {'allocated_streams': 0, 'playlists': []})
        entry['allocated_streams'] += _allocation_amount(item)
        for playlist_id in item.get('playlists') or []:
            if playlist_id not in entry['playlists']:
                entry['playlists'].append(playlist_id)

    return normalized


def normalize_selected_playlists(raw: Any) -> List[Dict[str, Any]]:
    """Normalize stored playlist selections to a list of dicts that each carry an ``id``."""
    if not raw:
        return []
    if not isinstance(raw, list):
        logger.warning(f"Ignoring selected playlists of unexpected type {type(raw).__name__}")
        return []

    normalized = []
    for item in raw:
        if isinstance(item, str):
            normalized.append({'id': item})
        elif isinstance(item, dict) and (item.get('id') or item.get('playlist_id')):
            entry = dict(item)
            entry['id'] = str(entry.pop('playlist_id', None) or entry['id'])
            normalized.append(entry)
        else:
            logger.warning(f"Dropping malformed playlist selection: {item!r}")
    return normalized


def to_allocation_results(selected_playlists: List[Dict[str, Any]]) -> List[AllocationResult]:
    """Strict allocation tuples from normalized selections; entries without a vendor are skipped."""
    results = []
    for entry in selected_playlists:
        if not entry.get('vendor_id'):
            continue
        results.append(AllocationResult(
            playlist_id=entry['id'],
            vendor_id=str(entry['vendor_id']),
            allocation=_allocation_amount(entry)
        ))
    return results


def allocation_payload(plan: AllocationPlan, playlists: List[Playlist]) -> Dict[str, Any]:
    """
    Build the campaign fields written after an allocation.

    ``totals.projected_streams`` is always the sum of the vendor allocations.
    """
    playlist_map = {p.id: p for p in playlists}
    selected = []
    vendor_allocations: Dict[str, Dict[str, Any]] = {}

    for allocation in plan.allocations:
        playlist = playlist_map.get(allocation.playlist_id)
        selected.append({
            'id': allocation.playlist_id,
            'name': playlist.name if playlist else '',
            'vendor_id': allocation.vendor_id,
            'allocation': allocation.allocation,
            'status': 'Pending',
        })
        entry = vendor_allocations.setdefault(allocation.vendor_id, {'allocated_streams': 0, 'playlists': []})
        entry['allocated_streams'] += allocation.allocation
        entry['playlists'].append(allocation.playlist_id)

    return {
        'selected_playlists': selected,
        'vendor_allocations': vendor_allocations,
        'totals': {'projected_streams': sum(e['allocated_streams'] for e in vendor_allocations.values())},
    }


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(str(value))
    return datetime.now()


def campaign_to_record(campaign: Campaign) -> Dict[str, Any]:
    return {
        'id': campaign.id,
        'name': campaign.name,
        'client': campaign.client,
        'stream_goal': campaign.stream_goal,
        'remaining_streams': campaign.remaining_streams,
        'budget': campaign.budget,
        'sub_genre': campaign.sub_genre,
        'music_genres': list(campaign.music_genres),
        'duration_days': campaign.duration_days,
        'start_date': campaign.start_date.isoformat() if campaign.start_date else None,
        'status': campaign.status.value,
        'selected_playlists': campaign.selected_playlists,
        'vendor_allocations': campaign.vendor_allocations,
        'totals': campaign.totals,
        'salesperson': campaign.salesperson,
        'notes': campaign.notes,
        'created_at': campaign.created_at.isoformat(),
        'updated_at': campaign.updated_at.isoformat(),
    }


def campaign_from_record(record: Dict[str, Any]) -> Campaign:
    """Build a Campaign from a stored row, normalizing its JSON columns."""
    vendor_allocations = normalize_vendor_allocations(record.get('vendor_allocations'))
    totals = dict(record.get('totals') or {})
    totals.setdefault('projected_streams', sum(e['allocated_streams'] for e in vendor_allocations.values()))

    stream_goal = _to_int(record.get('stream_goal'))
    remaining = record.get('remaining_streams')

    return Campaign(
        id=str(record['id']),
        name=record.get('name') or '',
        client=record.get('client') or record.get('client_name') or '',
        stream_goal=stream_goal,
        remaining_streams=_to_int(remaining) if remaining is not None else stream_goal,
        budget=float(record.get('budget') or 0),
        sub_genre=record.get('sub_genre') or '',
        music_genres=list(record.get('music_genres') or []),
        duration_days=_to_int(record.get('duration_days')),
        start_date=_parse_date(record.get('start_date')),
        status=CampaignStatus(record.get('status') or CampaignStatus.DRAFT.value),
        selected_playlists=normalize_selected_playlists(record.get('selected_playlists')),
        vendor_allocations=vendor_allocations,
        totals=totals,
        salesperson=record.get('salesperson'),
        notes=record.get('notes') or '',
        created_at=_parse_datetime(record.get('created_at')),
        updated_at=_parse_datetime(record.get('updated_at')),
    )


def weekly_update_to_record(update: WeeklyUpdate) -> Dict[str, Any]:
    return {
        'campaign_id': update.campaign_id,
        'streams': update.streams,
        'imported_on': update.imported_on.isoformat(),
        'notes': update.notes,
        'remaining_streams': update.remaining_streams,
        'created_at': update.created_at.isoformat(),
    }


def weekly_update_from_record(record: Dict[str, Any]) -> WeeklyUpdate:
    return WeeklyUpdate(
        campaign_id=str(record['campaign_id']),
        streams=_to_int(record.get('streams')),
        imported_on=_parse_date(record.get('imported_on')) or date.today(),
        notes=record.get('notes') or '',
        remaining_streams=record.get('remaining_streams'),
        created_at=_parse_datetime(record.get('created_at')),
    )
