"""Derive the extraction flow chart from the user's phase code.

Phase codes are numeric strings grouped into bands. The bands are *not*
ordered numerically: the deposit/property/loan/eligibility checks were added
after the 90000 band existed and were given the free 11000-14999 codes, so
they sort after 90000 even though their numbers are smaller. Everything here
compares phases through ``phase_position`` and never through ``int(code)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from schemas.flow import FlowStep


class PhaseBand(IntEnum):
    """Workflow bands in business order."""

    NOT_STARTED = 0
    PRE_CHECK = 1
    MARRIAGE_CHECK = 2
    SPOUSE = 3
    ACCOUNT_STATUS = 4
    PHONE_SIGN = 5
    BANK_SIGN = 6
    MULTI_CHILD_DONE = 7
    DEPOSIT_CHECK = 8
    PROPERTY_CHECK = 9
    LOAN_CHECK = 10
    ELIGIBILITY_CHECK = 11


# (lower, upper, band); upper is exclusive, None means unbounded. The later
# bands are listed first because they sit inside the NOT_STARTED range.
PHASE_BAND_RANGES: tuple[tuple[int, int | None, PhaseBand], ...] = (
    (11000, 12000, PhaseBand.DEPOSIT_CHECK),
    (12000, 13000, PhaseBand.PROPERTY_CHECK),
    (13000, 14000, PhaseBand.LOAN_CHECK),
    (14000, 15000, PhaseBand.ELIGIBILITY_CHECK),
    (0, 20000, PhaseBand.NOT_STARTED),
    (20000, 30000, PhaseBand.PRE_CHECK),
    (30000, 40000, PhaseBand.MARRIAGE_CHECK),
    (40000, 60000, PhaseBand.SPOUSE),
    (60000, 70000, PhaseBand.ACCOUNT_STATUS),
    (70000, 80000, PhaseBand.PHONE_SIGN),
    (80000, 90000, PhaseBand.BANK_SIGN),
    (90000, None, PhaseBand.MULTI_CHILD_DONE),
)

PhasePosition = tuple[PhaseBand, int]

_UNKNOWN_POSITION: PhasePosition = (PhaseBand.NOT_STARTED, 0)


def _phase_number(phase_code: str | None) -> int | None:
    if phase_code is None:
        return None
    code = phase_code.strip()
    # int() rejects non-ASCII digits such as "²"
    if not (code.isascii() and code.isdigit()):
        return None
    return int(code)


def phase_position(phase_code: str | None) -> PhasePosition:
    """Total-order key for a phase code: ``(band, numeric code)``.

    Unknown or malformed codes sort as the lowest position.
    """
    number = _phase_number(phase_code)
    if number is None:
        return _UNKNOWN_POSITION
    for lower, upper, band in PHASE_BAND_RANGES:
        if number >= lower and (upper is None or number < upper):
            return (band, number)
    return _UNKNOWN_POSITION


def phase_band(phase_code: str | None) -> PhaseBand:
    return phase_position(phase_code)[0]


def compare_phases(a: str | None, b: str | None) -> int:
    """Return -1, 0 or 1 comparing two phase codes in business order."""
    pa, pb = phase_position(a), phase_position(b)
    return (pa > pb) - (pa < pb)


def in_later_phase(phase_code: str | None) -> bool:
    """True once the multi-child check is behind the user (code >= 90000 or
    one of the 11000-14999 checks)."""
    return phase_band(phase_code) >= PhaseBand.MULTI_CHILD_DONE


@dataclass(frozen=True)
class FlowFlags:
    is_authorized: bool = False
    is_married: bool | None = None
    permitted_types: tuple[str, ...] = ()


# Step ids in presentation (and priority) order.
FLOW_STEP_LABELS: dict[str, str] = {
    "auth": "用户授权",
    "type_selection": "选择类型",
    "marriage": "婚姻核验",
    "phone_sign": "本人手机签约",
    "bank_sign": "本人银行卡签约",
    "multi_child": "多孩核验",
    "deposit": "缴存核验",
    "property": "房产核验",
    "loan": "贷款核验",
    "details": "确认提取信息",
    "submit": "提交申请",
    "done": "完成提取",
}


def _completed_steps(
    position: PhasePosition,
    flags: FlowFlags,
    selected_type: str | None,
    is_finished: bool,
) -> dict[str, bool]:
    def reached(code: str) -> bool:
        return position >= phase_position(code)

    later = position[0] >= PhaseBand.MULTI_CHILD_DONE
    return {
        "auth": flags.is_authorized or reached("20000"),
        "type_selection": selected_type is not None or reached("20000"),
        "marriage": reached("30001"),
        "phone_sign": reached("70001"),
        "bank_sign": reached("80001"),
        "multi_child": later,
        "deposit": later and reached("12000"),
        "property": later and reached("13000"),
        "loan": later and reached("14000"),
        "details": is_finished or (later and reached("14001")),
        "submit": is_finished,
        "done": is_finished,
    }


def _sub_label(
    step_id: str,
    completed: bool,
    flags: FlowFlags,
    selected_type: str | None,
) -> str | None:
    if step_id == "auth":
        return "已授权" if completed else "待授权"
    if step_id == "type_selection":
        if selected_type:
            return selected_type
        if flags.permitted_types:
            return f"可办理{len(flags.permitted_types)}项"
        return None
    if step_id == "marriage":
        if flags.is_married is None:
            return None
        return "已婚" if flags.is_married else "未婚"
    if step_id in {"phone_sign", "bank_sign"} and completed:
        return "已签约"
    if step_id == "done" and completed:
        return "提交成功"
    return None


def current_step_id(completed: dict[str, bool]) -> str:
    """First incomplete step in priority order; ``done`` once all are complete."""
    for step_id in FLOW_STEP_LABELS:
        if not completed[step_id]:
            return step_id
    return "done"


def derive_flow_state(
    phase_code: str | None,
    flags: FlowFlags | None = None,
    selected_type: str | None = None,
    is_finished: bool = False,
) -> list[FlowStep]:
    """Compute every flow step's status for ``phase_code``.

    Pure function: the same inputs always light the same steps.
    """
    flags = flags or FlowFlags()
    position = phase_position(phase_code)
    completed = _completed_steps(position, flags, selected_type, is_finished)
    active = current_step_id(completed)

    return [
        FlowStep(
            id=step_id,
            label=label,
            is_active=step_id == active,
            is_completed=completed[step_id],
            sub_label=_sub_label(step_id, completed[step_id], flags, selected_type),
        )
        for step_id, label in FLOW_STEP_LABELS.items()
    ]
