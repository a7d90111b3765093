"""
Collection sync services package

All sync services using the opsync/service.py architecture.
"""

from .tickets_sync import TicketsSyncService, TICKETS_SCHEMA, run_sync as run_tickets_sync
from .incidents_sync import IncidentsSyncService, INCIDENTS_SCHEMA, run_sync as run_incidents_sync

SERVICE_CLASSES = {
    'tickets': TicketsSyncService,
    'incidents': IncidentsSyncService,
}

__all__ = [
    # Tickets
    'TicketsSyncService',
    'TICKETS_SCHEMA',
    'run_tickets_sync',

    # Incidents
    'IncidentsSyncService',
    'INCIDENTS_SCHEMA',
    'run_incidents_sync',

    'SERVICE_CLASSES',
]
