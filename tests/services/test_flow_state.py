"""Tests for phase ordering and flow chart derivation."""

import pytest

from schemas.flow import FlowStep
from services.flow_state import (
    FLOW_STEP_LABELS,
    FlowFlags,
    PhaseBand,
    compare_phases,
    derive_flow_state,
    in_later_phase,
    phase_band,
    phase_position,
)


# Codes in business order; 11000-14001 come after the 90000 band.
ORDERED_CODES = [
    "20000",
    "20001",
    "30000",
    "30001",
    "40001",
    "60000",
    "70000",
    "70001",
    "80000",
    "80001",
    "90000",
    "11000",
    "12000",
    "13000",
    "14000",
    "14001",
]


def _steps_by_id(steps: list[FlowStep]) -> dict[str, FlowStep]:
    return {step.id: step for step in steps}


def _completed_ids(code: str) -> set[str]:
    return {step.id for step in derive_flow_state(code) if step.is_completed}


class TestPhaseOrdering:
    def test_later_band_sorts_after_ninety_thousand(self) -> None:
        assert compare_phases("11000", "90000") == 1
        assert compare_phases("90000", "11000") == -1
        assert compare_phases("80001", "80001") == 0

    def test_ordered_codes_are_strictly_increasing(self) -> None:
        positions = [phase_position(code) for code in ORDERED_CODES]

        assert positions == sorted(positions)
        assert len(set(positions)) == len(positions)

    @pytest.mark.parametrize(
        ("code", "band"),
        [
            ("10001", PhaseBand.NOT_STARTED),
            ("20000", PhaseBand.PRE_CHECK),
            ("30001", PhaseBand.MARRIAGE_CHECK),
            ("50001", PhaseBand.SPOUSE),
            ("60000", PhaseBand.ACCOUNT_STATUS),
            ("70001", PhaseBand.PHONE_SIGN),
            ("80001", PhaseBand.BANK_SIGN),
            ("90000", PhaseBand.MULTI_CHILD_DONE),
            ("11500", PhaseBand.DEPOSIT_CHECK),
            ("12000", PhaseBand.PROPERTY_CHECK),
            ("13999", PhaseBand.LOAN_CHECK),
            ("14001", PhaseBand.ELIGIBILITY_CHECK),
        ],
    )
    def test_bands(self, code: str, band: PhaseBand) -> None:
        assert phase_band(code) is band

    @pytest.mark.parametrize("code", [None, "", "abc", "-5", "1.5", "²", "١٢", "１２"])
    def test_malformed_codes_sort_lowest(self, code: str | None) -> None:
        assert phase_position(code) == (PhaseBand.NOT_STARTED, 0)
        assert in_later_phase(code) is False

    def test_in_later_phase(self) -> None:
        assert in_later_phase("11000") is True
        assert in_later_phase("95000") is True
        assert in_later_phase("80001") is False


class TestDeriveFlowState:
    def test_all_steps_in_order(self) -> None:
        steps = derive_flow_state("20000")

        assert [step.id for step in steps] == list(FLOW_STEP_LABELS)
        assert [step.label for step in steps] == list(FLOW_STEP_LABELS.values())

    def test_bank_signed_before_multi_child(self) -> None:
        steps = _steps_by_id(derive_flow_state("80001"))

        assert steps["phone_sign"].is_completed is True
        assert steps["bank_sign"].is_completed is True
        assert steps["multi_child"].is_completed is False
        assert steps["multi_child"].is_active is True

    def test_later_band_completes_multi_child(self) -> None:
        steps = _steps_by_id(derive_flow_state("11000"))

        assert steps["multi_child"].is_completed is True
        assert steps["deposit"].is_completed is False
        assert steps["deposit"].is_active is True

    def test_completed_steps_grow_with_phase(self) -> None:
        previous: set[str] = set()
        for code in ORDERED_CODES:
            completed = _completed_ids(code)
            assert previous <= completed, code
            previous = completed

    def test_exactly_one_active_step(self) -> None:
        for code in [*ORDERED_CODES, "0", "garbage"]:
            active = [step for step in derive_flow_state(code) if step.is_active]
            assert len(active) == 1, code

    def test_not_started(self) -> None:
        steps = _steps_by_id(derive_flow_state("0"))

        assert steps["auth"].is_active is True
        assert steps["auth"].sub_label == "待授权"
        assert not any(step.is_completed for step in steps.values())

    def test_authorized_flag_completes_auth_early(self) -> None:
        steps = _steps_by_id(
            derive_flow_state("10000", FlowFlags(is_authorized=True))
        )

        assert steps["auth"].is_completed is True
        assert steps["auth"].sub_label == "已授权"
        assert steps["type_selection"].is_active is True

    def test_sub_labels(self) -> None:
        flags = FlowFlags(
            is_authorized=True, is_married=False, permitted_types=("租房", "购房")
        )
        steps = _steps_by_id(derive_flow_state("80001", flags))

        assert steps["type_selection"].sub_label == "可办理2项"
        assert steps["marriage"].sub_label == "未婚"
        assert steps["phone_sign"].sub_label == "已签约"
        assert steps["bank_sign"].sub_label == "已签约"
        assert steps["done"].sub_label is None

    def test_selected_type_shown(self) -> None:
        steps = _steps_by_id(derive_flow_state("20000", selected_type="租房提取"))

        assert steps["type_selection"].sub_label == "租房提取"

    def test_finished(self) -> None:
        steps = _steps_by_id(derive_flow_state("14001", is_finished=True))

        assert all(step.is_completed for step in steps.values())
        assert steps["done"].is_active is True
        assert steps["done"].sub_label == "提交成功"
