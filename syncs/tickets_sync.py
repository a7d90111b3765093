"""
===================================================================================
TICKETS SYNC SERVICE - Sheet -> ticket_logs
===================================================================================

Uses the reconcile architecture from opsync/service.py.

Features:
- Reads the ticket sheet (Apps Script JSON or CSV export)
- Column aliases for both sheet layouts, including the "Ation" header typo
- Operator review before commit, plus a once-per-day automatic run
- Local edits mirrored back to the sheet

Usage:
    python -m syncs.tickets_sync              # Analyze and show the diff
    python -m syncs.tickets_sync --yes        # Analyze and commit
    python -m syncs.tickets_sync --auto       # Guarded daily run
"""

import asyncio

from opsync.cli import create_cli_parser, run_cli
from opsync.schema import CollectionSchema
from opsync.service import ReconcileSyncService

# ============================================================================
# CONFIGURATION
# ============================================================================

TICKETS_SCHEMA = CollectionSchema(
    name="tickets",
    table="ticket_logs",
    columns={
        'natural_key': 'ticket_number',
        'subject': 'short_desc',
        'status': 'status',
        'type': 'type',
        'assignee': 'assign',
        'details': 'details',
        'action': 'action',
        'resolution': 'resolved_detail',
        'remark': 'remark',
        'severity': 'severity',
        'category': 'category',
        'sub_category': 'sub_category',
        'responsibility': 'responsibility',
        'timestamp': 'date',
    },
    aliases={
        'natural_key': ['ticketNo', 'ticketNumber', 'Ticket Number', 'Ticket No'],
        'subject': ['subject', 'shortDescription', 'description', 'Short Description & Detail', 'Description'],
        'status': ['status', 'Status'],
        'type': ['ticketType', 'type', 'Ticket Type'],
        'assignee': ['assignee', 'assign', 'Assign'],
        'details': ['description', 'detail', 'Detail'],
        'action': ['actionTaken', 'action', 'Ation', 'Action'],
        'resolution': ['resolutionNote', 'resolvedDetail', 'Resolved detail'],
        'remark': ['remark', 'Remark'],
        'severity': ['severity', 'Severity'],
        'category': ['category', 'Category'],
        'sub_category': ['subCategory', 'Sub Category'],
        'timestamp': ['date', 'ticketDate', 'createdAt', 'Date'],
    },
    defaults={
        'status': 'Open',
        'type': 'Incident',
        'assignee': 'Unassigned',
        'severity': 'Low',
    },
    compare_fields=(
        'status', 'subject', 'assignee', 'action', 'details', 'remark',
        'type', 'resolution', 'category', 'sub_category', 'severity',
    ),
    # Field names the sheet's doPost handler expects
    outbound_names={
        'natural_key': 'ticketNumber',
        'type': 'ticketType',
        'subject': 'shortDescription',
        'details': 'detail',
        'action': 'actionTaken',
        'resolution': 'resolvedDetail',
        'assignee': 'assign',
        'responsibility': 'responsibility',
        'timestamp': 'date',
    },
    audit_columns=('imported_at', 'updated_at'),
    # Set in the dashboard only; mirrored out, never imported
    local_only=('responsibility',),
)


# ============================================================================
# TICKETS SYNC SERVICE
# ============================================================================

class TicketsSyncService(ReconcileSyncService):
    """
    Reconciles the ticket sheet with the ticket_logs table.

    Stored fields: ticket_number (natural key), short_desc, status, type,
    assign, details, action, resolved_detail, remark, severity, category,
    sub_category, responsibility (dashboard-owned), date.
    """

    schema = TICKETS_SCHEMA


# ============================================================================
# ENTRY POINT
# ============================================================================

def run_sync(auto: bool = True, commit: bool = False) -> dict:
    """Run the tickets sync and return results."""
    return asyncio.run(run_cli(TicketsSyncService(), auto=auto, commit=commit))


if __name__ == "__main__":
    parser = create_cli_parser("Tickets")
    args = parser.parse_args()

    result = run_sync(auto=args.auto, commit=args.yes and not args.dry_run)
    print(f"\nResult: {result}")
