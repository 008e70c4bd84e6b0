# manage.py
import json
import sys

from app import create_app, shutdown_services
from catalog.database.db_manager import db
from catalog.domain.library import LabelPruner
from catalog.errors import CatalogError
from catalog.utils.cancellation import CancellationRequested, CancelToken

USAGE = "Usage: python manage.py [create_db | sync [artist ...] | prune_labels [--yes]]"


def create_db(app):
    """Creates the database tables."""
    with app.app_context():
        db.create_all()
        print(f"Database tables ready at {db.engine.url.render_as_string(hide_password=True)}")
    return 0


def sync(app, artists):
    """Runs one sync in the foreground; any failure exits non-zero."""
    with app.app_context():
        settings = app.extensions['catalog_settings']
        orchestrator = app.extensions['sync_orchestrator_factory']()
        token = CancelToken.with_timeout(settings.sync_timeout_seconds)
        try:
            run = orchestrator.run(artists or None, cancel=token)
        except (CatalogError, CancellationRequested) as exc:
            print(f"Sync failed: {exc}", file=sys.stderr)
            return 1
        finally:
            token.dispose()
        print(json.dumps(run.summary(), indent=2, ensure_ascii=False))
        return 1 if run.errors and not run.succeeded else 0


def prune_labels(app, confirmed):
    """Deletes stored tracks whose album label does not match LABEL_SEARCH_TERM."""
    with app.app_context():
        settings = app.extensions['catalog_settings']
        pruner = LabelPruner(
            app.extensions['catalog_client'],
            app.extensions['track_repository'],
            settings.label_search_term,
        )
        try:
            verdicts = pruner.classify()
        except CatalogError as exc:
            print(f"Label check failed: {exc}", file=sys.stderr)
            return 1
        matching = sum(1 for v in verdicts if v.matches)
        unknown = sum(1 for v in verdicts if v.label is None)
        doomed = [v for v in verdicts if v.prunable]
        print(f"Matching '{settings.label_search_term}': {matching}")
        print(f"Other labels: {len(doomed)}")
        print(f"Label unknown (kept): {unknown}")
        for verdict in doomed:
            print(f"  - {verdict.name} | {verdict.artist_main} | {verdict.album} | {verdict.label} | {verdict.spotify_id}")
        try:
            count = pruner.prune(verdicts, dry_run=not confirmed)
        except CatalogError as exc:
            print(f"Delete failed: {exc}", file=sys.stderr)
            return 1
        if confirmed:
            print(f"Deleted {count} track(s).")
        elif count:
            print(f"Dry run: re-run with --yes to delete {count} track(s).")
        return 0


def main(argv):
    if not argv:
        print("No command provided. " + USAGE)
        return 2
    command, args = argv[0], argv[1:]
    if command not in ('create_db', 'sync', 'prune_labels'):
        print(f"Unknown command: {command}")
        print(USAGE)
        return 2
    try:
        app = create_app()
    except CatalogError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    try:
        if command == 'create_db':
            return create_db(app)
        if command == 'sync':
            return sync(app, [a for a in args if not a.startswith('--')])
        return prune_labels(app, '--yes' in args)
    finally:
        shutdown_services(app)


if __name__ == '__main__':
    sys.exit(main(sys.argv[1:]))
