from __future__ import annotations

import logging
from datetime import date, datetime

import click

from scheduler.config import SETTINGS
from scheduler.domain.errors import ParseError
from scheduler.infra.logging import setup_logging
from scheduler.services.clock import SystemClock, today, zone_for
from scheduler.services.due_dates import is_due, is_overdue
from scheduler.services.recurrence_parser import parse_schedule
from scheduler.services.recurrence_serializer import (
    INVALID,
    decode_schedule,
    encode_schedule,
    render,
    render_frequency,
)

logger = logging.getLogger(__name__)


class _DateParam(click.ParamType):
    name = "date"

    def convert(self, value, param, ctx):
        if isinstance(value, date):
            return value
        try:
            return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
        except ValueError:
            self.fail("Expected YYYY-MM-DD", param, ctx)


_DATE = _DateParam()


@click.group()
@click.option("--tz", "timezone", default=SETTINGS.timezone, show_default=True, help="IANA timezone.")
@click.option("--verbose", "-v", is_flag=True, help="Also log to stderr.")
@click.pass_context
def cli(ctx: click.Context, timezone: str, verbose: bool) -> None:
    """Parse, render and evaluate habit and task schedules."""
    setup_logging(console=verbose)
    try:
        zone_for(timezone)
    except ParseError as exc:
        raise click.BadParameter(exc.message, param_hint="--tz") from exc
    ctx.obj = {"timezone": timezone, "clock": SystemClock()}


@cli.command()
@click.argument("text")
@click.option("--task", is_flag=True, help="Parse a one-off due date instead of a recurrence.")
@click.pass_obj
def parse(obj: dict, text: str, task: bool) -> None:
    """Print the canonical frequency for TEXT."""
    timezone = obj["timezone"]
    now = obj["clock"].now(timezone)
    result = parse_schedule(text, timezone, now, is_recurring=not task)
    if not result.ok:
        logger.debug("Parse failed for %r: %s", text, result.error)
        raise click.ClickException(f"{result.error.kind.value}: {result.message}")
    click.echo(encode_schedule(result.value))
    click.echo(render(result.value, timezone))


@cli.command(name="render")
@click.argument("frequency")
@click.option("--task", is_flag=True, help="FREQUENCY is a fixed due date.")
@click.pass_obj
def render_command(obj: dict, frequency: str, task: bool) -> None:
    """Print display text for a stored FREQUENCY."""
    text = render_frequency(frequency.replace("\\n", "\n"), task, obj["timezone"])
    click.echo(text)
    if text == INVALID:
        click.get_current_context().exit(1)


@cli.command()
@click.argument("frequency")
@click.option("--on", "day", type=_DATE, default=None, help="Day to check (default: today).")
@click.option("--task", is_flag=True, help="FREQUENCY is a fixed due date.")
@click.pass_obj
def due(obj: dict, frequency: str, day: date | None, task: bool) -> None:
    """Report whether FREQUENCY is due on a day."""
    timezone = obj["timezone"]
    now = obj["clock"].now(timezone)
    try:
        schedule = decode_schedule(frequency.replace("\\n", "\n"), task, timezone)
    except ParseError as exc:
        raise click.ClickException(f"{exc.kind.value}: {exc.message}") from exc
    check_day = day or today(now, timezone)
    status = "due" if is_due(schedule, timezone, check_day) else "not due"
    if is_overdue(schedule, timezone, now):
        status += " (overdue)"
    click.echo(f"{check_day.isoformat()}: {status}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
