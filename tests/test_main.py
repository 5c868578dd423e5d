import pytest
from fastapi.testclient import TestClient

import emi_calculator
import emi_config
from emi_calculator import compute_installment
from main import app


client = TestClient(app)


def loan(**overrides):
    body = {"principal": 1_000_000, "annual_rate": 8.5, "tenure": 20, "tenure_unit": "years"}
    body.update(overrides)
    return body


class TestHealth:
    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestEMIEndpoint:
    def test_emi(self):
        response = client.post("/emi", json=loan())
        assert response.status_code == 200
        data = response.json()
        assert data["tenure_months"] == 240
        assert data["emi"] == pytest.approx(compute_installment(1_000_000, 8.5, 240))

    def test_zero_rate(self):
        response = client.post("/emi", json=loan(principal=12_000, annual_rate=0, tenure=12, tenure_unit="months"))
        assert response.status_code == 200
        assert response.json()["emi"] == 1000.0


class TestCalculateLoan:
    def test_full_schedule(self):
        response = client.post("/calculate-loan", json=loan())
        assert response.status_code == 200
        data = response.json()

        assert data["emi"] == pytest.approx(8678.31, abs=0.5)
        assert data["currency"] == "INR"
        assert len(data["schedule"]) == 240
        assert len(data["chart"]) == 240

        summary = data["summary"]
        assert summary["actual_tenure"] == 240
        assert summary["tenure_months"] == 240
        assert summary["principal"] == 1_000_000
        assert summary["total_payment"] == pytest.approx(1_000_000 + summary["total_interest"], abs=0.02)
        assert data["savings"] == {"interest_saved": 0.0, "months_saved": 0}

        first = data["schedule"][0]
        assert first["Month"] == 1
        assert first["Opening Balance"] == 1_000_000
        assert "Payment Date" not in first

    def test_prepayments_shorten_tenure(self):
        response = client.post("/calculate-loan", json=loan(prepayments={"1": 500_000, "3": -10}))
        assert response.status_code == 200
        data = response.json()

        assert data["summary"]["actual_tenure"] < 240
        assert data["summary"]["total_prepayment"] == pytest.approx(500_000)
        assert data["savings"]["months_saved"] == 240 - data["summary"]["actual_tenure"]
        assert data["savings"]["interest_saved"] > 0
        assert data["schedule"][0]["Prepayment"] == 500_000
        assert data["schedule"][2]["Prepayment"] == 0

    def test_tenure_in_months_and_dates(self):
        response = client.post("/calculate-loan", json=loan(
            principal=50_000, annual_rate=12, tenure=18, tenure_unit="months",
            start_date="2024-01-31", currency="USD",
        ))
        assert response.status_code == 200
        data = response.json()
        assert data["currency"] == "USD"
        assert data["summary"]["tenure_months"] == 18
        assert [row["Payment Date"] for row in data["schedule"][:2]] == ["2024-02-29", "2024-03-31"]

    def test_long_schedule_chart_is_downsampled(self):
        response = client.post("/calculate-loan", json=loan(tenure=50))
        assert response.status_code == 200
        data = response.json()
        assert len(data["schedule"]) == 600
        assert len(data["chart"]) == 200


class TestValidation:
    @pytest.mark.parametrize("overrides,message", [
        ({"principal": 0}, "Loan amount must be greater than 0"),
        ({"principal": -100}, "Loan amount must be greater than 0"),
        ({"annual_rate": -1}, "Interest rate cannot be negative"),
        ({"tenure": 0}, "Loan tenure must be greater than 0"),
    ])
    def test_field_errors(self, overrides, message):
        response = client.post("/calculate-loan", json=loan(**overrides))
        assert response.status_code == 422
        assert message in response.text

    def test_unknown_tenure_unit(self):
        response = client.post("/calculate-loan", json=loan(tenure_unit="weeks"))
        assert response.status_code == 422

    def test_principal_limit(self):
        response = client.post("/calculate-loan", json=loan(principal=100_000_001))
        assert response.status_code == 422
        assert "Loan amount cannot exceed" in response.json()["detail"]

    def test_rate_limit(self):
        response = client.post("/emi", json=loan(annual_rate=50.5))
        assert response.status_code == 422
        assert "Interest rate cannot exceed" in response.json()["detail"]

    def test_tenure_limit(self):
        response = client.post("/calculate-loan", json=loan(tenure=51))
        assert response.status_code == 422
        assert "600 months" in response.json()["detail"]

    def test_tenure_rounding_to_zero_months(self):
        response = client.post("/calculate-loan", json=loan(tenure=0.2, tenure_unit="months"))
        assert response.status_code == 422

    def test_bad_start_date(self):
        response = client.post("/calculate-loan", json=loan(start_date="31/01/2024"))
        assert response.status_code == 422
        assert "YYYY-MM-DD" in response.json()["detail"]

    def test_limits_follow_config(self, monkeypatch):
        monkeypatch.setattr(emi_config, "MAX_TENURE_MONTHS", 120)
        response = client.post("/calculate-loan", json=loan(tenure=11))
        assert response.status_code == 422
        assert "120 months" in response.json()["detail"]

    @pytest.mark.parametrize("path,body", [
        ("/calculate-loan", '{"principal": 1000000, "annual_rate": 8.5, "tenure": 1e30}'),
        ("/calculate-loan", '{"principal": 1000000, "annual_rate": 8.5, "tenure": 1e30, "tenure_unit": "months"}'),
        ("/emi", '{"principal": 1000000, "annual_rate": 8.5, "tenure": 1e400}'),
        ("/calculate-loan", '{"principal": NaN, "annual_rate": 8.5, "tenure": 20}'),
        ("/emi", '{"principal": 1000000, "annual_rate": Infinity, "tenure": 20}'),
        ("/calculate-loan", '{"principal": 1000000, "annual_rate": 8.5, "tenure": 20, "prepayments": {"1": NaN}}'),
    ])
    def test_huge_and_non_finite_numbers(self, path, body):
        response = client.post(path, content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 422

    def test_huge_tenure_names_the_limit(self):
        response = client.post("/calculate-loan", json=loan(tenure=1e30))
        assert response.status_code == 422
        assert "600 months" in response.json()["detail"]

    def test_unsupported_currency(self):
        response = client.post("/calculate-loan", json=loan(currency="XYZ"))
        assert response.status_code == 422

    def test_lowercase_currency_rejected(self):
        response = client.post("/calculate-loan", json=loan(currency="usd"))
        assert response.status_code == 422


class TestScheduleReuse:
    def _count_generations(self, monkeypatch):
        calls = []
        original = emi_calculator.generate_schedule

        def counting(*args, **kwargs):
            calls.append(args)
            return original(*args, **kwargs)

        monkeypatch.setattr(emi_calculator, "generate_schedule", counting)
        return calls

    def test_schedule_built_once_without_prepayments(self, monkeypatch):
        calls = self._count_generations(monkeypatch)
        response = client.post("/calculate-loan", json=loan())
        assert response.status_code == 200
        assert len(calls) == 1

    def test_baseline_built_once_with_prepayments(self, monkeypatch):
        calls = self._count_generations(monkeypatch)
        response = client.post("/calculate-loan", json=loan(prepayments={"1": 500_000}))
        assert response.status_code == 200
        assert len(calls) == 2
