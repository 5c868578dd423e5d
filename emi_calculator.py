import datetime as dt
import calendar as cal
import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, List, Mapping, Optional
from dateutil.relativedelta import relativedelta
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_HALF_UP, getcontext

# High precision for finance
getcontext().prec = 28

logger = logging.getLogger(__name__)

# Remaining balance at or below this counts as repaid
BALANCE_EPSILON = 0.01

TENURE_UNITS = ("years", "months")


def finance_round(value, ndigits=2):
    """Banker's rounding (ROUND_HALF_EVEN)."""
    return Decimal(value).quantize(Decimal(10) ** -ndigits, rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class AmortizationRow:
    month: int
    opening_balance: float
    interest: float
    principal: float
    prepayment: float
    total_payment: float
    closing_balance: float


@dataclass(frozen=True)
class ScheduleSummary:
    emi: float
    principal: float
    total_interest: float
    total_payment: float
    total_prepayment: float
    actual_tenure: int

    def to_dict(self):
        return asdict(self)


def compute_installment(principal: float, annual_rate: float, tenure_months: int) -> float:
    """Fixed monthly installment for a reducing-balance loan.

    annual_rate is a percentage (8.5 means 8.5% a year). Non-positive
    principal or tenure gives 0; a zero rate repays in equal slices.
    """
    if principal <= 0 or tenure_months <= 0:
        return 0.0
    if annual_rate <= 0:
        return principal / tenure_months

    r = annual_rate / 12 / 100
    growth = (1 + r) ** tenure_months
    return principal * r * growth / (growth - 1)


def generate_schedule(principal: float, annual_rate: float, tenure_months: int,
                      prepayments: Optional[Mapping[int, float]] = None,
                      epsilon: float = BALANCE_EPSILON) -> List[AmortizationRow]:
    """Month-by-month amortization ledger.

    The installment is computed once and held for the whole run, so
    prepayments shorten the schedule instead of lowering the EMI. The
    ledger stops after tenure_months rows or once the balance drops to
    epsilon, whichever comes first.
    """
    if principal <= 0 or tenure_months <= 0:
        return []

    prepayments = prepayments or {}
    monthly_rate = annual_rate / 12 / 100 if annual_rate > 0 else 0.0
    emi = compute_installment(principal, annual_rate, tenure_months)

    schedule = []
    remaining = principal

    for month in range(1, tenure_months + 1):
        if remaining <= epsilon:
            break

        opening = remaining
        interest = opening * monthly_rate
        # never negative amortization: a short installment repays no principal
        principal_paid = max(0.0, min(emi - interest, opening))

        prepayment = prepayments.get(month, 0.0)
        closing = opening - principal_paid - prepayment

        # only the part of the prepayment that settles the loan is applied
        actual_prepayment = prepayment
        if closing < 0:
            actual_prepayment = prepayment + closing
            closing = 0.0

        total_payment = interest + principal_paid + actual_prepayment

        schedule.append(AmortizationRow(
            month=month,
            opening_balance=max(0.0, opening),
            interest=max(0.0, interest),
            principal=max(0.0, principal_paid),
            prepayment=max(0.0, actual_prepayment),
            total_payment=max(0.0, total_payment),
            closing_balance=max(0.0, closing),
        ))
        remaining = closing

    return schedule


def summarize_schedule(schedule, emi=0.0, principal=0.0):
    """Totals the way the loan summary displays them."""
    return ScheduleSummary(
        emi=emi,
        principal=principal,
        total_interest=sum(row.interest for row in schedule),
        total_payment=sum(row.total_payment for row in schedule),
        total_prepayment=sum(row.prepayment for row in schedule),
        actual_tenure=len(schedule),
    )


def normalize_prepayments(raw) -> Dict[int, float]:
    """Drop entries that are not a positive amount for a positive month.

    Month keys may be ints or digit strings (JSON object keys arrive as
    strings). Cleared, non-numeric and non-positive amounts are removed.
    """
    cleaned = {}
    for key, value in (raw or {}).items():
        if isinstance(key, bool):
            continue
        if isinstance(key, str):
            key = key.strip()
            if not key.isdigit():
                continue
            month = int(key)
        elif isinstance(key, int):
            month = key
        else:
            continue
        if month <= 0:
            continue

        try:
            amount = float(value)
        except (TypeError, ValueError):
            continue
        if not math.isfinite(amount) or amount <= 0:
            continue
        cleaned[month] = amount
    return cleaned


def tenure_to_months(tenure, unit="years"):
    """Convert a tenure to whole months, rounding half up."""
    if unit not in TENURE_UNITS:
        raise ValueError(f"Unknown tenure unit {unit!r}; expected one of {TENURE_UNITS}")
    months = Decimal(str(tenure)) * (12 if unit == "years" else 1)
    return int(months.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def chart_series(schedule, max_points=240):
    """Points for the principal/interest/balance chart.

    Long schedules keep every ceil(n / max_points)-th row.
    """
    rows = list(schedule)
    if max_points > 0 and len(rows) > max_points:
        rows = rows[::math.ceil(len(rows) / max_points)]
    return [
        {
            "month": row.month,
            "principal": row.principal + row.prepayment,
            "interest": row.interest,
            "closing_balance": row.closing_balance,
        }
        for row in rows
    ]


class EMI_Calculator:
    """EMI calculator for a fixed-rate loan with optional prepayments."""

    def __init__(self, principal, annual_rate, tenure_months,
                 prepayments=None, start_date=None, epsilon=BALANCE_EPSILON):
        self.P = float(principal)
        self.annual_rate = float(annual_rate)
        self.tenure_months = int(tenure_months)
        self.prepayments = normalize_prepayments(prepayments)
        self.start_date = start_date
        self.epsilon = epsilon

        self.emi = finance_round(
            compute_installment(self.P, self.annual_rate, self.tenure_months), 2)

    def _adjust_end_of_month(self, date, months_to_add=1):
        """Maintain end-of-month when rolling dates."""
        new_date = date + relativedelta(months=months_to_add)
        last_day = cal.monthrange(new_date.year, new_date.month)[1]
        if date.day == cal.monthrange(date.year, date.month)[1]:
            return dt.date(new_date.year, new_date.month, last_day)
        return new_date

    def _payment_date(self, month):
        if self.start_date is None:
            return None
        return self._adjust_end_of_month(self.start_date, month)

    def rows(self, prepayments=None):
        if prepayments is None:
            prepayments = self.prepayments
        schedule = generate_schedule(self.P, self.annual_rate, self.tenure_months,
                                     prepayments, epsilon=self.epsilon)
        logger.debug("Generated %d of %d months (principal=%s, rate=%s%%, prepayments=%d)",
                     len(schedule), self.tenure_months, self.P, self.annual_rate, len(prepayments))
        return schedule

    def get_schedule(self, rows=None):
        """Generate amortization schedule.

        rows, when given, is a ledger already produced by rows().
        """
        if rows is None:
            rows = self.rows()
        schedule = []
        for row in rows:
            entry = {"Month": row.month}
            pay_date = self._payment_date(row.month)
            if pay_date is not None:
                entry["Payment Date"] = pay_date.strftime("%Y-%m-%d")
            entry.update({
                "Opening Balance": finance_round(row.opening_balance, 2),
                "Interest": finance_round(row.interest, 2),
                "Principal": finance_round(row.principal, 2),
                "Prepayment": finance_round(row.prepayment, 2),
                "Total Payment": finance_round(row.total_payment, 2),
                "Closing Balance": finance_round(row.closing_balance, 2),
            })
            schedule.append(entry)
        return schedule

    def summary(self, rows=None):
        if rows is None:
            rows = self.rows()
        emi = compute_installment(self.P, self.annual_rate, self.tenure_months)
        return summarize_schedule(rows, emi=emi, principal=self.P)

    def savings(self, rows=None):
        """Interest and months saved against the same loan without prepayments."""
        if rows is None:
            rows = self.rows()
        with_prepayments = summarize_schedule(rows)
        baseline = summarize_schedule(rows if not self.prepayments else self.rows(prepayments={}))
        return {
            "interest_saved": max(0.0, baseline.total_interest - with_prepayments.total_interest),
            "months_saved": max(0, baseline.actual_tenure - with_prepayments.actual_tenure),
        }

    def print_schedule(self):
        """Print amortization schedule with totals."""
        rows = self.rows()
        schedule = self.get_schedule(rows)
        summary = self.summary(rows)
        savings = self.savings(rows)

        dated = self.start_date is not None
        header = f"{'Month':<6} "
        if dated:
            header += f"{'Date':<12} "
        header += (f"{'Opening':<14} {'Interest':<12} {'Principal':<12} "
                   f"{'Prepayment':<12} {'Payment':<12} {'Closing':<14}")
        print(header)
        for row in schedule:
            line = f"{row['Month']:<6} "
            if dated:
                line += f"{row['Payment Date']:<12} "
            line += (f"{row['Opening Balance']:<14} {row['Interest']:<12} "
                     f"{row['Principal']:<12} {row['Prepayment']:<12} "
                     f"{row['Total Payment']:<12} {row['Closing Balance']:<14}")
            print(line)

        print("\nSummary:")
        print(f"  EMI             : {self.emi}")
        print(f"  Total Payments  : {finance_round(summary.total_payment, 2)}")
        print(f"  Total Interest  : {finance_round(summary.total_interest, 2)}")
        print(f"  Total Prepaid   : {finance_round(summary.total_prepayment, 2)}")
        print(f"  Actual Tenure   : {summary.actual_tenure} of {self.tenure_months} months")
        if self.prepayments:
            print(f"  Interest Saved  : {finance_round(savings['interest_saved'], 2)}")
            print(f"  Months Saved    : {savings['months_saved']}")


def _parse_prepayment_input(text):
    """Parse "month:amount, month:amount" into a prepayment map."""
    raw = {}
    for item in text.split(","):
        if ":" not in item:
            continue
        month, amount = item.split(":", 1)
        raw[month] = amount
    return normalize_prepayments(raw)


# Example usage with user input
if __name__ == "__main__":
    principal = float(input("Enter loan principal: ") or "1000000")
    annual_rate = float(input("Enter annual rate (%): ") or "8.5")
    years = float(input("Enter term in years: ") or "20")
    start = input("Enter start date (YYYY-MM-DD, blank for none): ")
    prepayments = _parse_prepayment_input(
        input("Enter prepayments as month:amount, comma separated: ") or "")

    calc = EMI_Calculator(
        principal=principal,
        annual_rate=annual_rate,
        tenure_months=tenure_to_months(years, "years"),
        prepayments=prepayments,
        start_date=dt.datetime.strptime(start, "%Y-%m-%d").date() if start else None,
    )
    print("\nEMI =", calc.emi)
    calc.print_schedule()
