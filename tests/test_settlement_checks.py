"""
정산 항목 체크 테스트
"""
import pytest

from maze_settlement.core.ledger import compute_settlement
from maze_settlement.exceptions import InvalidInputError
from maze_settlement.storage.settlement_checks import (
    MonthlySettlementChecks,
    company_completion_rates,
    completion_rate,
    stale_checks,
)


@pytest.fixture
def flows():
    return compute_settlement({}, 10).flows


class TestToggle:

    def test_check_and_uncheck(self, flows):
        checks = MonthlySettlementChecks(2025, 1)
        checks.toggle("CULTURE_TO_SKP", True, 10000, "김정산")
        check = checks.checks["CULTURE_TO_SKP"]
        assert check.checked and check.checked_by == "김정산" and check.checked_at
        assert checks.is_checked("CULTURE_TO_SKP")

        checks.toggle("CULTURE_TO_SKP", False, 10000, "김정산")
        assert not checks.is_checked("CULTURE_TO_SKP")
        assert checks.checks["CULTURE_TO_SKP"].checked_by is None

    def test_unknown_flow(self, flows):
        checks = MonthlySettlementChecks(2025, 1)
        with pytest.raises(InvalidInputError):
            checks.toggle("NOPE", True, 0, "김정산", valid_ids=[f.id for f in flows])

    def test_dict_round_trip(self):
        checks = MonthlySettlementChecks(2025, 3).toggle("CULTURE_TO_SKP", True, 500, "박확인")
        restored = MonthlySettlementChecks.from_dict(2025, 3, checks.to_dict())
        assert restored == checks
        assert restored.period == "2025-03"

    def test_from_empty(self):
        assert MonthlySettlementChecks.from_dict(2025, 1, None).checks == {}


class TestCompletion:

    def test_completion_rate(self, flows):
        checks = MonthlySettlementChecks(2025, 1)
        amounts = {f.id: f.amount for f in flows}
        for flow_id in ("CULTURE_TO_SKP", "SKP_TO_CULTURE_PLATFORM"):
            checks.toggle(flow_id, True, amounts[flow_id], "김정산")

        assert completion_rate(checks, flows) == 33.3
        rates = company_completion_rates(checks, flows, ["CULTURE", "AGENCY", "SKP"])
        assert rates == {"CULTURE": 100.0, "AGENCY": 0.0, "SKP": 33.3}

    def test_no_flows(self):
        assert completion_rate(MonthlySettlementChecks(2025, 1), []) == 0.0

    def test_stale_after_amount_change(self, flows):
        checks = MonthlySettlementChecks(2025, 1)
        checks.toggle("CULTURE_TO_SKP", True, 1, "김정산")
        checks.toggle("SKP_TO_MAZE_REVENUE", True, 30000, "김정산")
        checks.toggle("FMC_TO_SKP_AGENCY", False, 0, "김정산")
        assert stale_checks(checks, flows) == ["CULTURE_TO_SKP"]
