"""Static exam guidance: solving sequences, method summaries and workflows."""

from typing import Optional

from knowledge_base.loader import normalize_code

from .schema import CalculationGuide, WorkflowPhase

# Solving order for common archetype pairs, keyed "FIRST-SECOND" by rank.
HYBRID_SEQUENCES = {
    "A3-A1": "First compute discount rate (A3), then use in capital structure analysis (A1)",
    "A1-A4": "First analyze debt structure (A1), then apply priority waterfall (A4)",
    "A2A-A3": "First compute discount rate (A3), then analyze debt overhang (A2A)",
    "A1-A5": "First value debt/equity (A1), then analyze payout policy (A5)",
}

# Standard method of each archetype, used when adapting a comparable solution.
COMP_APPROACHES = {
    "A1": "Value the debt and equity claims, computing the expected return on debt from "
          "default-adjusted expected cash flows and discounting tax shields at the debt rate",
    "A2A": "Compute debt and equity payoffs state by state with max(0, V - D), then compare "
           "equity value with and without the project",
    "A2B": "Write each type's payoff under each action and check the incentive constraints "
           "for separating and pooling equilibria",
    "A3": "Unlever the comparable beta, relever at the target structure and apply the CAPM "
          "to get the cost of capital",
    "A4": "Rank claims by seniority and distribute firm value down the absolute priority waterfall",
    "A5": "Compare shareholder wealth under each payout policy, adjusting for taxes and signaling",
    "A6": "Size the hedge with the minimum-variance hedge ratio and net the exposure",
    "A7": "Compare investing now with the discounted value of the optimal future decision",
}

GENERIC_APPROACH = "Follow the standard solution method of the comparable problem step by step"

CALCULATION_GUIDES = {
    "A1": CalculationGuide(
        archetype="A1",
        steps=[
            "Identify debt type (zero-coupon, coupon, amortizing)",
            "Build default or survival probabilities for each period",
            "Compute expected cash flows to debt holders",
            "Solve for the expected return on debt (IRR of expected cash flows)",
            "Value interest tax shields at the appropriate discount rate",
        ],
        formulas=[
            "S(t) = (1 - h)^t",
            "E[r_D] = IRR(expected debt cash flows)",
            "PV(TS) = sum of tax rate x Interest_t x S(t) / (1 + r_D)^t",
            "V_L = V_U + PV(TS)",
        ],
    ),
    "A2A": CalculationGuide(
        archetype="A2A",
        steps=[
            "Lay out firm value in each state",
            "Compute debt payoff min(V, D) and equity payoff max(0, V - D) per state",
            "Repeat with the new project included",
            "Compare the change in equity value with the investment equity funds",
        ],
        formulas=[
            "E = max(0, V - D)",
            "D_payoff = min(V, D)",
            "Invest iff dE >= I",
        ],
    ),
    "A3": CalculationGuide(
        archetype="A3",
        steps=[
            "Unlever the comparable's equity beta",
            "Relever at the target capital structure",
            "Apply the CAPM for the cost of equity",
            "Combine into the WACC or use r_U for APV",
        ],
        formulas=[
            "beta_U = E/V x beta_E + D/V x beta_D",
            "r_E = r_f + beta_E x (E[r_m] - r_f)",
            "WACC = E/V x r_E + D/V x r_D x (1 - tax rate)",
        ],
    ),
}

GENERIC_CALCULATION_STEPS = [
    "Extract all given values",
    "Map each value to the archetype template",
    "Execute the calculation step by step",
    "Check units and signs",
]


def solving_sequence(first: str, second: str) -> str:
    """Recommended solving order for two archetypes."""
    key = f"{first}-{second}"
    return HYBRID_SEQUENCES.get(key, f"Solve {first} first, then {second}")


def infer_comp_approach(archetype: Optional[str]) -> str:
    """Standard method for a comparable problem's archetype."""
    return COMP_APPROACHES.get(normalize_code(archetype), GENERIC_APPROACH)


def calculation_guide(archetype: Optional[str]) -> CalculationGuide:
    """Calculation steps and formulas for an archetype, with a generic fallback."""
    code = normalize_code(archetype)
    guide = CALCULATION_GUIDES.get(code)
    if guide is not None:
        return guide.model_copy(deep=True)
    return CalculationGuide(archetype=code or "Unknown", steps=list(GENERIC_CALCULATION_STEPS))


def build_workflow(
    archetype: Optional[str],
    time_allocation_minutes: float,
    deviation_codes: Optional[list[str]] = None,
    hybrid_sequence: Optional[str] = None,
) -> list[WorkflowPhase]:
    """Five-phase exam workflow: identify, extract, map, execute, check."""
    code = normalize_code(archetype) or "Unknown"
    execute_minutes = max(time_allocation_minutes - 3, 1)

    identify = [f"Confirm archetype {code}"]
    if hybrid_sequence:
        identify.append(hybrid_sequence)
    if deviation_codes:
        identify.append(f"Watch for deviations: {', '.join(deviation_codes)}")

    return [
        WorkflowPhase(
            name="step1_identify",
            label="Identify archetype and deviations",
            time_budget="30 seconds",
            checklist=identify,
        ),
        WorkflowPhase(
            name="step2_extract",
            label="Extract given values",
            time_budget="30-60 seconds",
            checklist=["List every number with its unit", "Note what is asked in each part"],
        ),
        WorkflowPhase(
            name="step3_map",
            label="Map values to the template",
            time_budget="30 seconds",
            checklist=[f"Open the {code} template", "Place each given value"],
        ),
        WorkflowPhase(
            name="step4_execute",
            label="Execute calculations",
            time_budget=f"{execute_minutes:g} minutes",
            checklist=["Work through each part in order", "Apply every deviation checkpoint"],
        ),
        WorkflowPhase(
            name="step5_check",
            label="Sanity check",
            time_budget="1-2 minutes",
            checklist=["Check signs and magnitudes", "Compare against the key insight of the archetype"],
        ),
    ]
