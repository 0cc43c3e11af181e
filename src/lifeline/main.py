"""
Lifeline Drill Entry Point

Runs one full SOS against the logging dialer and text channels and the
SQLite event store, then prints the per-contact outcome. Nothing is
actually dialed or texted.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from lifeline.core.config import ConfigurationError, ConfigurationManager
from lifeline.core.database import initialize_database
from lifeline.core.logging import get_logger, initialize_logging
from lifeline.models.emergency import Contact, EscalationOutcome, Hospital, Location
from lifeline.services.emergency import EmergencyError, EmergencyResponseService
from lifeline.services.emergency.channels import (
    LoggingDialerChannel, LoggingTextChannel, StaticHospitalProvider, StaticLocationProvider
)
from lifeline.services.emergency.event_store import SQLiteEventRepository


def parse_contact(value: str, index: int) -> Contact:
    """Parse NAME:PHONE into a Contact"""
    name, sep, phone = value.rpartition(':')
    if not sep or not name.strip() or not phone.strip():
        raise argparse.ArgumentTypeError(f"Contact must be NAME:PHONE, got {value!r}")
    return Contact(id=f"drill-{index}", name=name.strip(), phone=phone.strip())


def parse_hospital(value: str) -> Hospital:
    """Parse NAME:PHONE[:PATIENT_ID] into a Hospital"""
    parts = [part.strip() for part in value.split(':')]
    if len(parts) not in (2, 3) or not parts[0] or not parts[1]:
        raise argparse.ArgumentTypeError(f"Hospital must be NAME:PHONE[:PATIENT_ID], got {value!r}")
    patient_id = parts[2] if len(parts) == 3 and parts[2] else None
    return Hospital(name=parts[0], phone=parts[1], patient_id=patient_id)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lifeline",
        description="Run an SOS drill against logging channels"
    )
    parser.add_argument("--contact", action="append", default=[], metavar="NAME:PHONE",
                        help="Emergency contact in priority order (repeatable)")
    parser.add_argument("--lat", type=float, help="Latitude of the current location")
    parser.add_argument("--lng", type=float, help="Longitude of the current location")
    parser.add_argument("--hospital", type=parse_hospital, metavar="NAME:PHONE[:PATIENT_ID]",
                        help="Primary hospital")
    parser.add_argument("--countdown", type=int,
                        help="Countdown seconds before activation (default from config)")
    parser.add_argument("--cancel-after", type=float, metavar="SECONDS",
                        help="Cancel the SOS this many seconds after arming")
    parser.add_argument("--config-dir", default="config", help="Configuration directory")
    return parser


def format_outcome(outcome: EscalationOutcome) -> List[str]:
    """Render the outcome as printable lines"""
    if outcome.cancelled:
        return ["SOS cancelled before activation"]

    lines = ["SOS activated"]
    for action in outcome.actions:
        lines.append(
            f"  {action.contact.name} ({action.contact.phone}): "
            f"{action.status.value} via {action.channel.value}"
        )
    if outcome.report and outcome.report.text_sent:
        lines.append(f"  Text sent to {len(outcome.report.text_recipients)} recipient(s)")
    else:
        lines.append("  No text sent")
    if outcome.event:
        lines.append(f"  Event recorded: {outcome.event.id}")
    return lines


async def run_drill(args: argparse.Namespace, contacts: List[Contact]) -> EscalationOutcome:
    """Load configuration, wire the service and run one SOS"""
    config_manager = ConfigurationManager(args.config_dir)
    config_manager.load_config()

    initialize_logging(config_manager.config)
    logger = get_logger('main')
    logger.info(f"Lifeline drill starting, version {config_manager.get('app.version', '1.0.0')}")

    db = initialize_database(config_manager.get('database.path'))

    location = None
    if args.lat is not None and args.lng is not None:
        location = Location(lat=args.lat, lng=args.lng)

    service = EmergencyResponseService.from_config(
        config_manager,
        dialer=LoggingDialerChannel(),
        texter=LoggingTextChannel(),
        repository=SQLiteEventRepository(db)
    )
    service.set_status_callback(print)

    await service.start()
    cancel_handle = None
    try:
        if args.cancel_after is not None:
            loop = asyncio.get_running_loop()
            cancel_handle = loop.call_later(args.cancel_after, service.cancel_sos)

        return await service.trigger_sos(
            contacts,
            location_provider=StaticLocationProvider(location),
            hospital_provider=StaticHospitalProvider(args.hospital),
            countdown_seconds=args.countdown
        )
    finally:
        if cancel_handle:
            cancel_handle.cancel()
        await service.stop()
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if (args.lat is None) != (args.lng is None):
        parser.error("--lat and --lng must be given together")

    try:
        contacts = [parse_contact(value, index) for index, value in enumerate(args.contact, 1)]
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    try:
        outcome = asyncio.run(run_drill(args, contacts))
    except KeyboardInterrupt:
        print("\nDrill interrupted")
        return 130
    except (ConfigurationError, EmergencyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for line in format_outcome(outcome):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
