import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name, default):
    return int(_env_float(name, default))


# Business limits enforced by the API before calling the engine
MAX_PRINCIPAL = _env_float("EMI_MAX_PRINCIPAL", 100_000_000.0)
MAX_ANNUAL_RATE = _env_float("EMI_MAX_ANNUAL_RATE", 50.0)
MAX_TENURE_MONTHS = _env_int("EMI_MAX_TENURE_MONTHS", 600)

# Balance at or below this is treated as fully repaid (currency units)
BALANCE_EPSILON = _env_float("EMI_BALANCE_EPSILON", 0.01)

CHART_MAX_POINTS = _env_int("EMI_CHART_MAX_POINTS", 240)

CORS_ORIGINS = [o.strip() for o in os.getenv("EMI_CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("EMI_LOG_LEVEL", "INFO").upper()
