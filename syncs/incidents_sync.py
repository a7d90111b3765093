"""
===================================================================================
INCIDENTS SYNC SERVICE - Sheet -> incidents
===================================================================================

Same pipeline as tickets with a smaller whitelist: only subject, status,
type, project and priority decide whether an incident changed. Remarks and
timeline entries edited in the dashboard are never overwritten by a sync
unless one of those fields differs, and even then only mapped columns are
written.

Usage:
    python -m syncs.incidents_sync [--auto] [--yes] [--dry-run]
"""

import asyncio

from opsync.cli import create_cli_parser, run_cli
from opsync.schema import CollectionSchema
from opsync.service import ReconcileSyncService

INCIDENTS_SCHEMA = CollectionSchema(
    name="incidents",
    table="incidents",
    columns={
        'natural_key': 'ticket',
        'subject': 'subject',
        'status': 'status',
        'type': 'type',
        'project': 'project',
        'severity': 'priority',
        'timestamp': 'created_at',
    },
    aliases={
        'natural_key': ['ticketNo', 'ticketNumber'],
        'subject': ['subject', 'shortDescription', 'description'],
        'status': ['status'],
        'type': ['ticketType', 'type'],
        'project': ['project'],
        'severity': ['priority', 'severity'],
        'timestamp': ['date', 'ticketDate', 'createdAt'],
    },
    defaults={
        'subject': 'Untitled',
        'status': 'Open',
        'type': 'Incident',
        'project': 'General',
        'severity': 'Medium',
    },
    compare_fields=('status', 'subject', 'type', 'project', 'severity'),
    outbound_names={
        'natural_key': 'ticket',
        'severity': 'priority',
    },
)


class IncidentsSyncService(ReconcileSyncService):
    schema = INCIDENTS_SCHEMA


def run_sync(auto: bool = True, commit: bool = False) -> dict:
    """Run the incidents sync and return results."""
    return asyncio.run(run_cli(IncidentsSyncService(), auto=auto, commit=commit))


if __name__ == "__main__":
    parser = create_cli_parser("Incidents")
    args = parser.parse_args()

    result = run_sync(auto=args.auto, commit=args.yes and not args.dry_run)
    print(f"\nResult: {result}")
