"""
Command line entry point for the Overdue Ticket Alert System.

Commands:
- alert: load an export, write the overdue report, email an alert
- report: load one or more exports and write the analytics workbook
- check-recipients: validate candidate alert recipients
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import click

from .analytics import calculate_analytics
from .config import AppConfig, OutputConfig, get_config
from .email_sender import EmailSenderError, HTTPAlertSender, SMTPAlertSender
from .ingest import IngestError, load_tickets
from .models import NotificationResult, Ticket, TicketSource
from .notifier import OverdueNotifier
from .overdue import OverdueClassifier
from .recipients import validate_emails
from .report import ExcelGeneratorError, generate_analytics_report, generate_overdue_report


def setup_logging(level: str) -> None:
    """
    Configure application logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


SOURCE_CHOICES = click.Choice([s.value for s in TicketSource])


class PipelineError(Exception):
    """Error during pipeline execution."""
    pass


def _with_output(config: AppConfig, output_path: Optional[Path], analytics: bool = False) -> AppConfig:
    """Return a copy of the config writing its report to ``output_path``."""
    if not output_path:
        return config
    output = config.output
    return AppConfig(
        email=config.email,
        alert=config.alert,
        output=OutputConfig(
            output_dir=output_path.parent,
            report_filename=output.report_filename if analytics else output_path.name,
            analytics_filename=output_path.name if analytics else output.analytics_filename,
        ),
        log_level=config.log_level,
    )


def resolve_recipients(custom: Sequence[str]) -> Optional[list[str]]:
    """
    Validate custom recipients.

    Returns:
        The valid custom recipients, or None to use the configured list.

    Raises:
        PipelineError: If custom recipients were given but none is valid.
    """
    if not custom:
        return None

    checked = validate_emails(custom)
    for address in checked.invalid:
        logger.warning(f"Ignoring invalid recipient: {address!r}")
    if not checked.valid:
        raise PipelineError("No valid recipients provided")
    return checked.valid


def validate_config(config: AppConfig, use_relay: bool, has_custom_recipients: bool) -> None:
    """
    Validate configuration before sending.

    Raises:
        PipelineError: If configuration is invalid.
    """
    errors = config.validate(use_relay=use_relay)
    if has_custom_recipients:
        errors = [e for e in errors if "OVERDUE_ALERT_RECIPIENTS" not in e]
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        raise PipelineError(
            f"Configuration validation failed with {len(errors)} error(s)"
        )


def run_alert(
    file_path: Path,
    source: str,
    config: Optional[AppConfig] = None,
    recipients: Sequence[str] = (),
    skip_email: bool = False,
    attach_report: bool = True,
    use_relay: bool = False,
    output_path: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> NotificationResult:
    """
    Run the overdue alert pipeline for one export.

    Args:
        file_path: Path to the .xlsx export.
        source: Ticketing system the export comes from.
        config: Optional configuration override.
        recipients: Custom recipients replacing the configured ones.
        skip_email: If True, stop after writing the report.
        attach_report: Attach the overdue report to the SMTP email.
        use_relay: Send through the HTTP relay instead of SMTP.
        output_path: Optional custom output path for the report.
        now: Current instant (defaults to local time).

    Returns:
        NotificationResult of the run.

    Raises:
        PipelineError: If loading, reporting or configuration fails.
    """
    config = _with_output(config or get_config(), output_path)
    now = now or datetime.now()

    logger.info("=" * 60)
    logger.info(f"Checking overdue tickets in {file_path.name}")
    logger.info("=" * 60)

    try:
        loaded = load_tickets(file_path, source)
    except IngestError as e:
        raise PipelineError(f"Ticket import failed: {e}") from e
    if loaded.errors:
        logger.warning(f"{len(loaded.errors)} issue(s) found while importing {file_path.name}")

    classifier = OverdueClassifier(config.alert.thresholds, config.alert.closed_statuses)
    overdue = classifier.filter_overdue(loaded.tickets, now)

    report_path = None
    if overdue:
        try:
            report_path = generate_overdue_report(overdue, config.output)
        except ExcelGeneratorError as e:
            raise PipelineError(f"Report generation failed: {e}") from e

    if skip_email:
        logger.info("Skipping email (--skip-email flag)")
        message = f"{len(overdue)} overdue tickets found, email skipped"
        if report_path:
            message += f"; report saved to {report_path}"
        return NotificationResult(success=True, message=message, overdue_count=len(overdue))

    custom = resolve_recipients(recipients)
    validate_config(config, use_relay, has_custom_recipients=custom is not None)

    if use_relay:
        try:
            with HTTPAlertSender(config.alert) as sender:
                notifier = OverdueNotifier(config.alert, sender, classifier)
                return notifier.notify(loaded.tickets, file_path.name, custom, now)
        except EmailSenderError as e:
            raise PipelineError(f"Relay setup failed: {e}") from e

    attachments = [report_path] if attach_report and report_path else []
    sender = SMTPAlertSender(config.email, attachments=attachments)
    notifier = OverdueNotifier(config.alert, sender, classifier)
    return notifier.notify(loaded.tickets, file_path.name, custom, now)


def run_report(
    file_paths: Sequence[Path],
    source: str,
    config: Optional[AppConfig] = None,
    output_path: Optional[Path] = None,
) -> Path:
    """
    Load exports and write the analytics workbook.

    Raises:
        PipelineError: If loading or report generation fails.
    """
    config = _with_output(config or get_config(), output_path, analytics=True)

    tickets: list[Ticket] = []
    for file_path in file_paths:
        try:
            loaded = load_tickets(file_path, source, existing_ids=[t.id for t in tickets])
        except IngestError as e:
            raise PipelineError(f"Ticket import failed: {e}") from e
        tickets.extend(loaded.tickets)

    classifier = OverdueClassifier(config.alert.thresholds, config.alert.closed_statuses)
    analytics = calculate_analytics(tickets, classifier=classifier)

    try:
        return generate_analytics_report(analytics, tickets, config.output)
    except ExcelGeneratorError as e:
        raise PipelineError(f"Report generation failed: {e}") from e


DEBUG_OPTION = click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug logging",
)


def _fail_unexpected(e: Exception, debug: bool) -> None:
    click.echo(f"Unexpected error: {e}", err=True)
    if debug:
        import traceback
        traceback.print_exc()
    sys.exit(1)


@click.group()
@click.pass_context
def main(ctx: click.Context) -> None:
    """
    Overdue Ticket Alert System.

    Classifies exported tickets by overdue urgency, writes Excel
    reports and emails alerts for overdue tickets.
    """
    try:
        config = get_config()
    except Exception as e:
        _fail_unexpected(e, debug=False)
    ctx.obj = {"config": config}


@main.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--source", "-s", type=SOURCE_CHOICES, default="clarify", show_default=True)
@click.option(
    "--recipient",
    "-r",
    "recipients",
    multiple=True,
    help="Recipient address (repeatable); replaces OVERDUE_ALERT_RECIPIENTS",
)
@click.option(
    "--skip-email",
    is_flag=True,
    default=False,
    help="Only write the overdue report",
)
@click.option(
    "--attach/--no-attach",
    default=True,
    help="Attach the overdue report to the email",
)
@click.option(
    "--relay",
    is_flag=True,
    default=False,
    help="Send through the HTTP relay (ALERT_RELAY_URL) instead of SMTP",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Custom output path for the report",
)
@DEBUG_OPTION
@click.pass_context
def alert(
    ctx: click.Context,
    file_path: Path,
    source: str,
    recipients: tuple[str, ...],
    skip_email: bool,
    attach: bool,
    relay: bool,
    output: Optional[Path],
    debug: bool,
) -> None:
    """Check FILE_PATH for overdue tickets and send an alert."""
    setup_logging("DEBUG" if debug else ctx.obj["config"].log_level)
    try:
        result = run_alert(
            file_path,
            source,
            config=ctx.obj["config"],
            recipients=recipients,
            skip_email=skip_email,
            attach_report=attach,
            use_relay=relay,
            output_path=output,
        )
    except PipelineError as e:
        click.echo(f"Pipeline failed: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user", err=True)
        sys.exit(130)
    except Exception as e:
        _fail_unexpected(e, debug)

    click.echo(f"{result.message} (overdue: {result.overdue_count})")
    if not result.success:
        sys.exit(1)


@main.command()
@click.argument(
    "file_paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--source", "-s", type=SOURCE_CHOICES, default="clarify", show_default=True)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Custom output path for the workbook",
)
@DEBUG_OPTION
@click.pass_context
def report(
    ctx: click.Context,
    file_paths: tuple[Path, ...],
    source: str,
    output: Optional[Path],
    debug: bool,
) -> None:
    """Write the analytics workbook for one or more exports."""
    setup_logging("DEBUG" if debug else ctx.obj["config"].log_level)
    try:
        path = run_report(file_paths, source, config=ctx.obj["config"], output_path=output)
    except PipelineError as e:
        click.echo(f"Pipeline failed: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user", err=True)
        sys.exit(130)
    except Exception as e:
        _fail_unexpected(e, debug)

    click.echo(f"Analytics report saved to: {path}")


@main.command("check-recipients")
@click.argument("addresses", nargs=-1, required=True)
def check_recipients(addresses: tuple[str, ...]) -> None:
    """Validate candidate recipient ADDRESSES."""
    checked = validate_emails(addresses)
    for address in checked.valid:
        click.echo(f"valid: {address}")
    for address in checked.invalid:
        click.echo(f"invalid: {address}")
    if not checked.all_valid:
        sys.exit(1)


if __name__ == "__main__":
    main()
