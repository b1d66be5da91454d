"""Cost Explorer reports."""

from __future__ import annotations

import typing as typ

from opskit.aws import cost
from opskit.flows.common import EXIT_OK, Clock, require_aws, utc_now

if typ.TYPE_CHECKING:
    import datetime as dt

    from opskit.aws import AwsContext
    from opskit.console import Console

_CONSOLE_URL = "https://console.aws.amazon.com/cost-management/"
_SERVICE_WIDTH = 45


def _money_row(label: str, amount: float, width: int) -> str:
    return f"  {label[:width]:<{width}} {amount:12.2f}"


def print_month_to_date(console: Console, client: object, today: dt.date) -> None:
    """Print the blended cost of the current month so far."""
    console.section("Month-to-Date Cost")
    row = cost.month_to_date(client, today)
    console.line(f"  Period:         {cost.month_start(today)} to {today}")
    console.line(f"  Blended Cost:   {row.amount:.2f} {row.unit}")


def print_daily(console: Console, client: object, today: dt.date) -> None:
    """Print one line per day for the last two weeks and their total."""
    console.section(f"Daily Cost Breakdown (Last {cost.DEFAULT_DAILY_DAYS} Days)")
    rows = cost.daily_costs(client, today)
    console.line(f"  {'DATE':<12} {'COST (USD)':>12}")
    console.line(f"  {'----':<12} {'----------':>12}")
    for row in rows:
        console.line(_money_row(row.label, row.amount, 12))
    console.line(_money_row("TOTAL", sum(row.amount for row in rows), 12))


def print_services(console: Console, client: object, today: dt.date) -> None:
    """Print the most expensive services this month."""
    console.section("Cost by Service (Current Month)")
    rows, total = cost.costs_by_service(client, today)
    console.line(f"  {'SERVICE':<{_SERVICE_WIDTH}} {'COST (USD)':>12}")
    console.line(f"  {'-------':<{_SERVICE_WIDTH}} {'----------':>12}")
    for row in rows:
        console.line(_money_row(row.label, row.amount, _SERVICE_WIDTH))
    console.line(_money_row("TOTAL", total, _SERVICE_WIDTH))


def print_forecast(console: Console, client: object, today: dt.date) -> None:
    """Print the month-end forecast, or a notice when none is available."""
    console.section("Cost Forecast")
    result = cost.forecast(client, today)
    if result is None:
        console.warning("Cost forecast not available")
        console.info("Forecasts require sufficient historical data")
        return
    console.line(f"  Forecast Period: {result.start} to {result.end}")
    console.line(f"  Forecasted Cost: {result.amount:.2f} {result.unit}")
    if result.lower is not None and result.upper is not None:
        console.line(
            f"  Prediction Range: {result.lower:.2f} - {result.upper:.2f} {result.unit}"
        )


def cost_flow(  # noqa: PLR0913
    console: Console,
    aws: AwsContext,
    *,
    daily: bool = False,
    services: bool = False,
    forecast: bool = False,
    now: Clock = utc_now,
) -> int:
    """Print the requested cost reports.

    Without any flag a summary is printed: month to date, top services and
    the forecast.
    """
    today = now().date()
    client = aws.client(cost.SERVICE)
    if daily or services or forecast:
        console.header("AWS Cost Report")
        require_aws(console, aws)
        if daily:
            print_daily(console, client, today)
        if services:
            print_services(console, client, today)
        if forecast:
            print_forecast(console, client, today)
        return EXIT_OK

    console.header("AWS Cost Summary")
    account_id = require_aws(console, aws)
    console.info(f"AWS Account: {account_id}")
    console.info(f"Date: {today}")
    print_month_to_date(console, client, today)
    print_services(console, client, today)
    print_forecast(console, client, today)
    console.blank()
    console.info("For more details:")
    console.line("  Daily breakdown:  opskit cost --daily")
    console.line(f"  AWS Console:      {_CONSOLE_URL}")
    return EXIT_OK
