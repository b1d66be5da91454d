"""Cost Explorer queries for month-to-date, daily, per-service and forecast cost."""

from __future__ import annotations

import dataclasses
import datetime as dt
import typing as typ

from botocore.exceptions import ClientError

from opskit.aws.session import call, error_code
from opskit.errors import RemoteCallError

SERVICE = "ce"
BLENDED_COST = "BlendedCost"
DEFAULT_DAILY_DAYS = 14
DEFAULT_TOP_SERVICES = 15
# Raised by get_cost_forecast on accounts without enough history.
_FORECAST_UNAVAILABLE = frozenset({"DataUnavailableException"})


@dataclasses.dataclass(frozen=True, slots=True)
class CostRow:
    """A labelled cost amount."""

    label: str
    amount: float
    unit: str = "USD"


@dataclasses.dataclass(frozen=True, slots=True)
class Forecast:
    """Forecast for the remainder of the month."""

    start: dt.date
    end: dt.date
    amount: float
    unit: str
    lower: float | None = None
    upper: float | None = None


def month_start(today: dt.date) -> dt.date:
    """Return the first day of ``today``'s month."""
    return today.replace(day=1)


def next_month_start(today: dt.date) -> dt.date:
    """Return the first day of the month after ``today``'s."""
    if today.month == 12:  # noqa: PLR2004
        return dt.date(today.year + 1, 1, 1)
    return dt.date(today.year, today.month + 1, 1)


def query_end(today: dt.date) -> dt.date:
    """Return the exclusive end date for month-to-date queries.

    Cost Explorer rejects empty periods, so on the first of the month the
    period is widened to include today.
    """
    if today == month_start(today):
        return today + dt.timedelta(days=1)
    return today


def _period(start: dt.date, end: dt.date) -> dict[str, str]:
    return {"Start": start.isoformat(), "End": end.isoformat()}


def _amount(metrics: dict[str, typ.Any]) -> tuple[float, str]:
    metric = metrics.get(BLENDED_COST, {})
    return float(metric.get("Amount") or 0), str(metric.get("Unit") or "USD")


def month_to_date(client: typ.Any, today: dt.date) -> CostRow:  # noqa: ANN401
    """Return the blended cost from the first of the month to ``today``."""
    response = call(
        client,
        SERVICE,
        "get_cost_and_usage",
        TimePeriod=_period(month_start(today), query_end(today)),
        Granularity="MONTHLY",
        Metrics=[BLENDED_COST, "UnblendedCost"],
    )
    results = response.get("ResultsByTime", [])
    amount, unit = _amount(results[0].get("Total", {})) if results else (0.0, "USD")
    return CostRow(month_start(today).strftime("%Y-%m"), amount, unit)


def daily_costs(
    client: typ.Any,  # noqa: ANN401
    today: dt.date,
    days: int = DEFAULT_DAILY_DAYS,
) -> list[CostRow]:
    """Return one row per day for the ``days`` days before ``today``."""
    start = today - dt.timedelta(days=days)
    response = call(
        client,
        SERVICE,
        "get_cost_and_usage",
        TimePeriod=_period(start, today),
        Granularity="DAILY",
        Metrics=[BLENDED_COST],
    )
    rows = []
    for result in response.get("ResultsByTime", []):
        amount, unit = _amount(result.get("Total", {}))
        rows.append(CostRow(result["TimePeriod"]["Start"], amount, unit))
    return rows


def costs_by_service(
    client: typ.Any,  # noqa: ANN401
    today: dt.date,
    top: int = DEFAULT_TOP_SERVICES,
) -> tuple[list[CostRow], float]:
    """Return the ``top`` most expensive services this month and the total.

    The total covers every service, not only the rows returned.
    """
    response = call(
        client,
        SERVICE,
        "get_cost_and_usage",
        TimePeriod=_period(month_start(today), query_end(today)),
        Granularity="MONTHLY",
        Metrics=[BLENDED_COST],
        GroupBy=[{"Type": "DIMENSION", "Key": "SERVICE"}],
    )
    results = response.get("ResultsByTime", [])
    groups = results[0].get("Groups", []) if results else []
    rows = []
    for group in groups:
        amount, unit = _amount(group.get("Metrics", {}))
        rows.append(CostRow(group["Keys"][0], amount, unit))
    rows.sort(key=lambda row: row.amount, reverse=True)
    return rows[:top], sum(row.amount for row in rows)


def forecast(client: typ.Any, today: dt.date) -> Forecast | None:  # noqa: ANN401
    """Return the forecast to the end of the month, or ``None`` if unavailable."""
    end = next_month_start(today)
    try:
        response = client.get_cost_forecast(
            TimePeriod=_period(today, end),
            Granularity="MONTHLY",
            Metric="BLENDED_COST",
        )
    except ClientError as exc:
        if error_code(exc) in _FORECAST_UNAVAILABLE:
            return None
        raise RemoteCallError.from_client_error(
            SERVICE, "get_cost_forecast", exc
        ) from exc
    total = response.get("Total", {})
    lower = upper = None
    by_time = response.get("ForecastResultsByTime", [])
    if by_time:
        lower_raw = by_time[0].get("PredictionIntervalLowerBound")
        upper_raw = by_time[0].get("PredictionIntervalUpperBound")
        if lower_raw and upper_raw:
            lower, upper = float(lower_raw), float(upper_raw)
    return Forecast(
        start=today,
        end=end,
        amount=float(total.get("Amount") or 0),
        unit=str(total.get("Unit") or "USD"),
        lower=lower,
        upper=upper,
    )
