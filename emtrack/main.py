from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from logging.handlers import RotatingFileHandler
from pathlib import Path

from emtrack.application.dto.audit_dto import AuditFilters
from emtrack.application.services.export_service import write_artifact
from emtrack.bootstrap.startup import initialize_database, seed_core_data
from emtrack.config import DB_FILE, EXPORT_DIR, LOG_DIR, settings
from emtrack.container import Container, build_container
from emtrack.domain.errors import EmtrackError, InvalidCredentials
from emtrack.infrastructure.export.common import format_timestamp

EXPORT_KINDS = (
    "tasks",
    "contacts",
    "contacts-ics",
    "updates",
    "ics-personnel",
    "documents",
    "audit-trail",
    "personnel",
    "incident-report",
    "system-summary",
)


def _setup_logging() -> Path:
    log_path = LOG_DIR / "app.log"
    handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(handler)
    return log_path


def _install_exception_hook(log_path: Path) -> None:
    def _handle_exception(exc_type, exc, tb) -> None:
        logging.getLogger(__name__).error("Unhandled exception", exc_info=(exc_type, exc, tb))
        print(f"Unexpected error. Details: {log_path}", file=sys.stderr)
        sys.__excepthook__(exc_type, exc, tb)

    sys.excepthook = _handle_exception


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="emtrack", description="Emergency incident tracking data layer")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Apply migrations and seed the default administrator")

    login = sub.add_parser("login-check", help="Verify a user ID / PIN pair")
    login.add_argument("--user", required=True)
    login.add_argument("--pin", required=True)

    export = sub.add_parser("export", help="Export records to a file")
    export.add_argument("kind", choices=EXPORT_KINDS)
    export.add_argument("--incident", default=None, help="Incident id (required for incident-scoped exports)")
    export.add_argument("--format", dest="fmt", choices=("csv", "html", "pdf"), default="csv")
    export.add_argument("--out", type=Path, default=EXPORT_DIR)
    export.add_argument("--user", required=True)
    export.add_argument("--pin", required=True)

    audit = sub.add_parser("audit", help="Print recent audit entries")
    audit.add_argument("--limit", type=int, default=20)
    audit.add_argument("--entity-id", default=None)
    audit.add_argument("--entity-type", default=None)
    return parser


def _run_export(container: Container, args: argparse.Namespace) -> int:
    ctx = container.auth_service.login_or_raise(args.user, args.pin)
    service = container.export_service
    if args.kind == "tasks":
        artifact = service.export_tasks(args.incident, ctx, args.fmt)
    elif args.kind == "audit-trail":
        artifact = service.export_audit_trail(args.incident, ctx, args.fmt)
    elif args.kind == "personnel":
        artifact = service.export_personnel(ctx, args.fmt)
    elif args.kind == "system-summary":
        artifact = service.export_system_summary(ctx)
    else:
        if not args.incident:
            print(f"--incident is required for {args.kind}", file=sys.stderr)
            return 2
        exporters = {
            "contacts": service.export_contacts,
            "contacts-ics": service.export_contacts_and_ics,
            "updates": service.export_updates,
            "ics-personnel": service.export_ics_personnel,
            "documents": service.export_documents,
            "incident-report": service.export_incident_report,
        }
        artifact = exporters[args.kind](args.incident, ctx, args.fmt)
    result = write_artifact(artifact, args.out)
    print(f"{result['path']}  sha256={result['sha256']}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    log_path = _setup_logging()
    _install_exception_hook(log_path)
    args = build_parser().parse_args(argv)

    if not initialize_database(db_file=DB_FILE, database_url=settings.database_url, log_dir=LOG_DIR):
        print(f"Database initialisation failed. Details: {log_path}", file=sys.stderr)
        return 1
    container = build_container()
    seed_core_data(container)

    try:
        if args.command == "init":
            print(f"Database ready: {DB_FILE}")
            return 0
        if args.command == "login-check":
            result = container.auth_service.login(args.user, args.pin)
            print("OK" if result.success else result.error)
            return 0 if result.success else 1
        if args.command == "export":
            return _run_export(container, args)
        if args.command == "audit":
            entries = container.audit.get_logs(
                AuditFilters(entity_id=args.entity_id, entity_type=args.entity_type)
            )[: args.limit]
            for entry in entries:
                print(
                    f"{format_timestamp(entry.timestamp)}  {entry.action.value:<13} "
                    f"{entry.entity_type:<15} {entry.user_id}: {entry.description}"
                )
            return 0
    except InvalidCredentials as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except EmtrackError as exc:
        logging.getLogger(__name__).warning("Command %s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
