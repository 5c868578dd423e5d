import logging
import datetime as dt
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict, Literal, Optional

import emi_config
from emi_calculator import (
    EMI_Calculator,
    chart_series,
    compute_installment,
    tenure_to_months,
)


logging.basicConfig(
    level=emi_config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="EMI Calculator")

app.add_middleware(
    CORSMiddleware,
    allow_origins=emi_config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


Currency = Literal["INR", "USD", "EUR", "GBP", "JPY", "CNY", "AUD", "CAD", "CHF", "NZD"]


class EMIRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    principal: float
    annual_rate: float
    tenure: float
    tenure_unit: Literal["years", "months"] = "years"

    @field_validator("principal")
    @classmethod
    def principal_positive(cls, v):
        if v <= 0:
            raise ValueError("Loan amount must be greater than 0")
        return v

    @field_validator("annual_rate")
    @classmethod
    def rate_not_negative(cls, v):
        if v < 0:
            raise ValueError("Interest rate cannot be negative")
        return v

    @field_validator("tenure")
    @classmethod
    def tenure_positive(cls, v):
        if v <= 0:
            raise ValueError("Loan tenure must be greater than 0")
        return v


class LoanRequest(EMIRequest):
    prepayments: Dict[int, float] = Field(default_factory=dict)
    start_date: Optional[str] = None  # YYYY-MM-DD
    currency: Currency = "INR"


def _reject(detail):
    logger.warning("Rejected loan request: %s", detail)
    raise HTTPException(status_code=422, detail=detail)


def _checked_months(req):
    """Apply the business limits and return the tenure in months."""
    if req.principal > emi_config.MAX_PRINCIPAL:
        _reject(f"Loan amount cannot exceed {emi_config.MAX_PRINCIPAL:,.0f}")
    if req.annual_rate > emi_config.MAX_ANNUAL_RATE:
        _reject(f"Interest rate cannot exceed {emi_config.MAX_ANNUAL_RATE:g}%")

    tenure_limit = f"Loan tenure must be between 1 and {emi_config.MAX_TENURE_MONTHS} months"
    # bound before rounding; huge tenures overflow the Decimal context
    raw_months = req.tenure * (12 if req.tenure_unit == "years" else 1)
    if raw_months > emi_config.MAX_TENURE_MONTHS + 1:
        _reject(tenure_limit)

    months = tenure_to_months(req.tenure, req.tenure_unit)
    if months <= 0 or months > emi_config.MAX_TENURE_MONTHS:
        _reject(tenure_limit)
    return months


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/emi")
def calculate_emi(req: EMIRequest):
    months = _checked_months(req)
    return {
        "emi": compute_installment(req.principal, req.annual_rate, months),
        "tenure_months": months,
    }


@app.post("/calculate-loan")
def calculate_loan(req: LoanRequest):
    months = _checked_months(req)

    start_date = None
    if req.start_date:
        try:
            start_date = dt.datetime.strptime(req.start_date, "%Y-%m-%d").date()
        except ValueError:
            _reject("start_date must be in YYYY-MM-DD format")

    calc = EMI_Calculator(
        principal=req.principal,
        annual_rate=req.annual_rate,
        tenure_months=months,
        prepayments=req.prepayments,
        start_date=start_date,
        epsilon=emi_config.BALANCE_EPSILON,
    )

    rows = calc.rows()
    summary = calc.summary(rows)
    logger.info(
        "Calculated loan: principal=%s rate=%s%% months=%d prepayments=%d emi=%s actual_tenure=%d",
        req.principal, req.annual_rate, months, len(calc.prepayments), calc.emi, summary.actual_tenure,
    )

    return {
        "emi": float(calc.emi),
        "currency": req.currency,
        "schedule": calc.get_schedule(rows),
        "summary": {**summary.to_dict(), "tenure_months": months},
        "savings": calc.savings(rows),
        "chart": chart_series(rows, max_points=emi_config.CHART_MAX_POINTS),
    }
