import argparse
from typing import Any, Dict

from opsync.errors import SyncError


def create_cli_parser(service_name: str) -> argparse.ArgumentParser:
    """Create a standardized CLI parser for sync services."""
    parser = argparse.ArgumentParser(description=f'{service_name} Sync Service')
    parser.add_argument('--auto', action='store_true', help='Run the guarded daily sync (no review)')
    parser.add_argument('--yes', action='store_true', help='Commit the analyzed changes without prompting')
    parser.add_argument('--dry-run', action='store_true', help='Analyze only, never commit')
    return parser


def print_classification(classification) -> None:
    summary = classification.summary()
    print(f"\nFetched {summary['fetched']} rows "
          f"({summary['skipped']} without key, {summary['duplicates']} duplicates)")
    print(f"  New:       {summary['new']}")
    print(f"  Updated:   {summary['updated']}")
    print(f"  Unchanged: {summary['unchanged']}")

    for result in classification.new:
        print(f"  + {result.natural_key}  {result.incoming.status}  {result.incoming.subject[:60]}")
    for result in classification.updated:
        print(f"  ~ {result.natural_key}  changed: {', '.join(result.changed_fields)}")


async def run_cli(service, auto: bool = False, commit: bool = False) -> Dict[str, Any]:
    """Drive one collection service from the command line."""
    if auto:
        return await service.run_daily_sync()

    try:
        classification = await service.analyze()
    except SyncError as e:
        return {'success': False, 'stage': 'analyze', 'error': str(e)}

    print_classification(classification)

    if not commit or not classification.has_changes:
        service.cancel()
        return {'success': True, 'committed': False, 'summary': classification.summary()}

    try:
        stats = await service.confirm()
    except SyncError as e:
        return {'success': False, 'stage': 'commit', 'error': str(e), 'summary': classification.summary()}

    return {'success': True, 'committed': True, 'stats': stats.to_dict()}
