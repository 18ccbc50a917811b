"""
Derived campaign metrics: progress, commission, cost and ROI.

All functions are pure and total; divisions are guarded so every input
produces a number.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from models.data_models import Campaign, CampaignStatus, UserContext, UserRole, Vendor

logger = logging.getLogger(__name__)


DEFAULT_COMMISSION_RATE = 0.20
OPERATIONAL_COST_SHARE = 0.15

APPROVED_STATUSES = (CampaignStatus.ACTIVE, CampaignStatus.COMPLETED)
PENDING_STATUSES = (CampaignStatus.DRAFT, CampaignStatus.BUILT, CampaignStatus.UNRELEASED)


@dataclass
class CampaignROI:
    """ROI figures for a single campaign."""
    campaign_id: str
    campaign_name: str
    revenue: float
    total_cost: float
    roi: float
    profit_margin: float
    stream_goal: int
    actual_streams: int
    cost_per_stream: float


@dataclass
class VendorPayout:
    """Amount owed to a vendor for allocated streams."""
    vendor_id: str
    vendor_name: str
    allocated_streams: int
    cost_per_stream: float
    amount_owed: float
    campaign_count: int


def progress_percentage(stream_goal: int, remaining_streams: Optional[int], clamp: bool = False) -> int:
    """
    Percentage of the stream goal delivered.

    Over-delivery yields values above 100 unless clamp is set.
    """
    if not stream_goal or stream_goal <= 0:
        return 0
    if remaining_streams is None:
        remaining_streams = stream_goal

    percentage = round((stream_goal - remaining_streams) / stream_goal * 100)
    if clamp:
        percentage = min(max(percentage, 0), 100)
    return percentage


def commission_amount(budget: Optional[float], rate: float = DEFAULT_COMMISSION_RATE) -> float:
    return round((budget or 0) * rate, 2)


def cost_per_stream(total_cost: float, actual_streams: int) -> float:
    return total_cost / actual_streams if actual_streams > 0 else 0.0


def roi(revenue: float, total_cost: float) -> float:
    """Return on cost as a percentage."""
    return (revenue - total_cost) / total_cost * 100 if total_cost > 0 else 0.0


def profit_margin(revenue: float, total_cost: float) -> float:
    return (revenue - total_cost) / revenue * 100 if revenue > 0 else 0.0


def commission_stats(campaigns: List[Campaign], context: Optional[UserContext] = None,
                     rate: float = DEFAULT_COMMISSION_RATE) -> Dict[str, Any]:
    """
    Commission totals split into approved and pending buckets.

    The same rate applies to every campaign; status only decides the bucket.
    When the context belongs to a salesperson, only their campaigns count.
    """
    if context is not None and context.role == UserRole.SALESPERSON:
        campaigns = [c for c in campaigns if c.salesperson == context.email]

    approved = [c for c in campaigns if c.status in APPROVED_STATUSES]
    pending = [c for c in campaigns if c.status in PENDING_STATUSES]

    return {
        'total_commission': sum((c.budget or 0) * rate for c in campaigns),
        'approved_commission': sum((c.budget or 0) * rate for c in approved),
        'pending_commission': sum((c.budget or 0) * rate for c in pending),
        'total_campaigns': len(campaigns),
        'approved_campaigns': len(approved),
        'pending_campaigns': len(pending),
    }


def campaign_roi(campaign: Campaign, revenue: float,
                 performance: List[Dict[str, Any]]) -> CampaignROI:
    """
    ROI for one campaign from its revenue and per-vendor performance rows.

    Each performance row carries ``actual_streams`` and ``cost_per_stream``;
    missing values count as zero.
    """
    total_cost = sum((p.get('cost_per_stream') or 0) * (p.get('actual_streams') or 0) for p in performance)
    actual_streams = sum(p.get('actual_streams') or 0 for p in performance)
    revenue = revenue or 0

    return CampaignROI(
        campaign_id=campaign.id,
        campaign_name=campaign.name,
        revenue=revenue,
        total_cost=total_cost,
        roi=roi(revenue, total_cost),
        profit_margin=profit_margin(revenue, total_cost),
        stream_goal=campaign.stream_goal,
        actual_streams=actual_streams,
        cost_per_stream=cost_per_stream(total_cost, actual_streams)
    )


def campaign_roi_breakdown(campaigns: List[Campaign],
                           performance: Dict[str, List[Dict[str, Any]]],
                           revenue: Optional[Dict[str, float]] = None) -> List[CampaignROI]:
    """
    ROI for every campaign, keyed into ``performance`` by campaign id.

    Revenue defaults to the campaign budget when not given explicitly.
    """
    revenue = revenue or {}
    return [
        campaign_roi(c, revenue.get(c.id, c.budget), performance.get(c.id, []))
        for c in campaigns
    ]


def overall_roi(breakdown: List[CampaignROI]) -> float:
    total_revenue = sum(c.revenue for c in breakdown)
    total_cost = sum(c.total_cost for c in breakdown)
    return roi(total_revenue, total_cost)


def underperforming_campaigns(breakdown: List[CampaignROI]) -> List[Dict[str, Any]]:
    """Campaigns losing money or earning under a 10% margin, with a suggested action."""
    flagged = []
    for c in breakdown:
        if c.roi >= 0 and c.profit_margin >= 10:
            continue

        if c.roi < -50:
            action = "Consider terminating campaign"
        elif c.roi < 0:
            action = "Reduce budget or optimize targeting"
        else:
            action = "Monitor closely and optimize"

        flagged.append({
            'campaign_id': c.campaign_id,
            'campaign_name': c.campaign_name,
            'budget_waste': abs(c.total_cost - c.revenue),
            'recommended_action': action,
        })
    return flagged


def profitability_metrics(breakdown: List[CampaignROI]) -> Dict[str, float]:
    total_revenue = sum(c.revenue for c in breakdown)
    total_cost = sum(c.total_cost for c in breakdown)
    gross_profit = total_revenue - total_cost

    return {
        'gross_profit': gross_profit,
        'net_profit': gross_profit * (1 - OPERATIONAL_COST_SHARE),
        'profit_margin': gross_profit / total_revenue * 100 if total_revenue > 0 else 0.0,
        'break_even_point': total_cost,
    }


def vendor_payouts(campaigns: List[Campaign], vendors: Dict[str, Vendor],
                   context: Optional[UserContext] = None) -> List[VendorPayout]:
    """
    Amounts owed to vendors for allocations on active and completed campaigns.

    Vendors without a ``cost_per_1k_streams`` rate are owed nothing. A vendor
    context sees only its own payouts.
    """
    streams: Dict[str, int] = {}
    campaign_counts: Dict[str, int] = {}

    for campaign in campaigns:
        if campaign.status not in APPROVED_STATUSES:
            continue
        for vendor_id, entry in campaign.vendor_allocations.items():
            allocated = int(entry.get('allocated_streams') or 0)
            streams[vendor_id] = streams.get(vendor_id, 0) + allocated
            campaign_counts[vendor_id] = campaign_counts.get(vendor_id, 0) + 1

    payouts = []
    for vendor_id in sorted(streams):
        if context is not None and context.role == UserRole.VENDOR and vendor_id not in context.vendor_ids:
            continue

        vendor = vendors.get(vendor_id)
        if vendor is None:
            logger.warning(f"Skipping payout for unknown vendor {vendor_id}")
            continue

        per_stream = (vendor.cost_per_1k_streams or 0) / 1000
        payouts.append(VendorPayout(
            vendor_id=vendor_id,
            vendor_name=vendor.name,
            allocated_streams=streams[vendor_id],
            cost_per_stream=per_stream,
            amount_owed=round(streams[vendor_id] * per_stream, 2),
            campaign_count=campaign_counts[vendor_id]
        ))

    return payouts
