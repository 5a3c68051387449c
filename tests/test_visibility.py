"""
조회 권한별 마스킹 테스트
"""
from maze_settlement.core.ledger import compute_settlement
from maze_settlement.core.master_data import DEFAULT_MASTER
from maze_settlement.core.visibility import (
    ALL_COMPANIES,
    filter_flows_for_viewer,
    filter_for_viewer,
    flows_for_company,
    viewable_company_codes,
)


def _settlement():
    return compute_settlement({"NAVER_MAZE_25": 100}, 50, DEFAULT_MASTER)


class TestViewableCodes:

    def test_admin_roles(self):
        assert viewable_company_codes("SUPER_ADMIN") == ALL_COMPANIES
        assert viewable_company_codes("SKP_ADMIN", "SKP") == ALL_COMPANIES

    def test_company_roles(self):
        assert viewable_company_codes("MAZE_ADMIN") == {"MAZE"}
        assert viewable_company_codes("AGENCY_ADMIN", "MAZE") == {"AGENCY"}

    def test_unknown_role_falls_back_to_company(self):
        assert viewable_company_codes("VIEWER", "CULTURE") == {"CULTURE"}
        assert viewable_company_codes(None) == frozenset()


class TestFilterForViewer:

    def test_scenario_d(self):
        """메이즈랜드 관리자는 자기 행만 금액 확인, 나머지는 회사명만"""
        companies = _settlement().companies
        rows = {c.code: c for c in filter_for_viewer(companies, viewable_company_codes("MAZE_ADMIN"))}

        maze = rows["MAZE"]
        assert not maze.redacted
        assert maze.profit == next(c for c in companies if c.code == "MAZE").profit

        for code in ("SKP", "CULTURE", "AGENCY"):
            row = rows[code]
            assert row.redacted
            assert row.name
            assert (row.revenue, row.income, row.expense, row.profit, row.profit_rate) == (
                None, None, None, None, None,
            )

    def test_full_view(self):
        companies = _settlement().companies
        rows = filter_for_viewer(companies, ALL_COMPANIES)
        assert rows == companies
        assert not any(r.redacted for r in rows)

    def test_original_not_mutated(self):
        result = _settlement()
        before = [c.to_dict() for c in result.companies]
        rows = filter_for_viewer(result.companies, {"CULTURE"})
        rows[0].name = "changed"
        assert [c.to_dict() for c in result.companies] == before

    def test_no_viewable_company(self):
        rows = filter_for_viewer(_settlement().companies, frozenset())
        assert all(r.redacted for r in rows)
        assert len(rows) == 4


class TestFlowFilters:

    def test_flows_for_company(self):
        flows = _settlement().flows
        culture_ids = {f.id for f in flows_for_company(flows, "CULTURE")}
        assert culture_ids == {"CULTURE_TO_SKP", "SKP_TO_CULTURE_PLATFORM"}

    def test_filter_flows_for_viewer(self):
        flows = _settlement().flows
        assert filter_flows_for_viewer(flows, ALL_COMPANIES) == flows
        agency_ids = {f.id for f in filter_flows_for_viewer(flows, {"AGENCY"})}
        assert agency_ids == {"FMC_TO_SKP_AGENCY"}
