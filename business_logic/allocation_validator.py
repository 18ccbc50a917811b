"""
Constraint validation for stream allocations.

Checks stored or freshly computed allocations against playlist capacity,
vendor caps, the stream goal and the projected-streams invariant.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union

from models.data_models import AllocationInput, AllocationPlan, AllocationResult, Campaign

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when an allocation must not be persisted."""
    pass


class ValidationSeverity(Enum):
    """Severity levels for validation issues."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationIssue:
    """A single problem found while validating an allocation."""
    severity: ValidationSeverity
    message: str
    field: Optional[str] = None
    playlist_id: Optional[str] = None
    vendor_id: Optional[str] = None


@dataclass
class ValidationResult:
    """Outcome of an allocation validation pass."""
    is_valid: bool
    issues: List[ValidationIssue]
    total_errors: int
    total_warnings: int

    @property
    def errors(self) -> List[str]:
        return [i.message for i in self.issues if i.severity == ValidationSeverity.ERROR]


class AllocationValidator:
    """
    Validates allocations against the constraints of their request.

    Hard ceilings (playlist capacity, vendor cap, goal) are errors; an unmet
    goal is only a warning.
    """

    def validate(self,
                 allocations: Union[AllocationPlan, List[AllocationResult]],
                 allocation_input: AllocationInput) -> ValidationResult:
        """
        Validate allocations against the request they were computed for.

        Args:
            allocations: An AllocationPlan or a bare list of AllocationResult
            allocation_input: The request holding playlists, caps and duration

        Returns:
            ValidationResult with every issue found
        """
        if isinstance(allocations, AllocationPlan):
            allocations = allocations.allocations

        issues: List[ValidationIssue] = []
        playlist_map = {p.id: p for p in allocation_input.playlists}
        vendor_totals: Dict[str, int] = {}
        playlist_totals: Dict[str, int] = {}
        duration_days = allocation_input.duration_days

        for allocation in allocations:
            playlist = playlist_map.get(allocation.playlist_id)
            if playlist is None:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    message=f"Playlist {allocation.playlist_id} not found",
                    field='playlist_id',
                    playlist_id=allocation.playlist_id
                ))
                continue

            if allocation.allocation < 0:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    message=f"Negative allocation for playlist {playlist.name}: {allocation.allocation}",
                    field='allocation',
                    playlist_id=playlist.id
                ))

            if allocation.vendor_id != playlist.vendor_id:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    message=f"Playlist {playlist.name} belongs to vendor {playlist.vendor_id}, "
                            f"not {allocation.vendor_id}",
                    field='vendor_id',
                    playlist_id=playlist.id,
                    vendor_id=allocation.vendor_id
                ))

            vendor_totals[allocation.vendor_id] = vendor_totals.get(allocation.vendor_id, 0) + allocation.allocation
            playlist_totals[playlist.id] = playlist_totals.get(playlist.id, 0) + allocation.allocation

        # Split rows for one playlist share its capacity
        for playlist_id, total in playlist_totals.items():
            playlist = playlist_map[playlist_id]
            capacity = playlist.avg_daily_streams * duration_days
            if total > capacity:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    message=f"Allocation exceeds capacity for playlist {playlist.name}: "
                            f"{total:,} > {capacity:,}",
                    field='allocation',
                    playlist_id=playlist_id
                ))

        for vendor_id, total in vendor_totals.items():
            cap = allocation_input.vendor_caps.get(vendor_id, 0)
            vendors = allocation_input.vendors
            if vendors is not None and vendor_id in vendors:
                cap = min(cap, vendors[vendor_id].max_daily_streams * duration_days)
            if total > cap:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    message=f"Vendor allocation exceeds cap: {total:,} > {cap:,}",
                    field='vendor_allocations',
                    vendor_id=vendor_id
                ))

        total_allocated = sum(vendor_totals.values())
        if total_allocated > allocation_input.goal:
            issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                message=f"Total allocation {total_allocated:,} exceeds goal {allocation_input.goal:,}",
                field='goal'
            ))
        elif total_allocated < allocation_input.goal:
            issues.append(ValidationIssue(
                severity=ValidationSeverity.WARNING,
                message=f"Allocation falls short of goal by {allocation_input.goal - total_allocated:,} streams",
                field='goal'
            ))

        return self._create_validation_result(issues)

    def validate_campaign_totals(self, campaign: Campaign) -> ValidationResult:
        """Check that the stored projected total matches the stored vendor allocations."""
        issues = []
        allocated = sum(int(entry.get('allocated_streams') or 0) for entry in campaign.vendor_allocations.values())
        projected = campaign.totals.get('projected_streams', 0)

        if allocated != projected:
            issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                message=f"Projected streams {projected:,} do not match vendor allocations {allocated:,}",
                field='totals.projected_streams'
            ))

        return self._create_validation_result(issues)

    def ensure_valid(self, allocations: Union[AllocationPlan, List[AllocationResult]],
                     allocation_input: AllocationInput):
        """Raise ValidationError when any hard constraint is violated."""
        result = self.validate(allocations, allocation_input)
        if not result.is_valid:
            raise ValidationError("; ".join(result.errors))

    def _create_validation_result(self, issues: List[ValidationIssue]) -> ValidationResult:
        total_errors = sum(1 for issue in issues if issue.severity == ValidationSeverity.ERROR)
        total_warnings = sum(1 for issue in issues if issue.severity == ValidationSeverity.WARNING)

        return ValidationResult(
            is_valid=total_errors == 0,
            issues=issues,
            total_errors=total_errors,
            total_warnings=total_warnings
        )

    def get_validation_summary(self, validation_result: ValidationResult) -> str:
        """
        Generate a human-readable summary of validation results.

        Args:
            validation_result: ValidationResult object

        Returns:
            Formatted summary string
        """
        summary_lines = []

        status = "PASSED" if validation_result.is_valid else "FAILED"
        summary_lines.append(f"Validation Status: {status}")

        if validation_result.total_errors > 0:
            summary_lines.append(f"Errors: {validation_result.total_errors}")

        if validation_result.total_warnings > 0:
            summary_lines.append(f"Warnings: {validation_result.total_warnings}")

        if validation_result.issues:
            summary_lines.append("\nIssues:")
            for issue in validation_result.issues:
                prefix = issue.severity.value.upper()
                location = ""
                if issue.playlist_id is not None:
                    location = f" [Playlist {issue.playlist_id}]"
                elif issue.vendor_id is not None:
                    location = f" [Vendor {issue.vendor_id}]"
                summary_lines.append(f"  {prefix}{location}: {issue.message}")

        return "\n".join(summary_lines)
