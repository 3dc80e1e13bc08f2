"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    payroll calculation engines.  This is the import surface for
    payroll_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import payroll_kernel.domain, payroll_kernel.exceptions and
    payroll_kernel.db.types.  MUST NOT import sqlalchemy, payroll_config
    or payroll_modules.

Invariants enforced:
    - Purity: engines never read the clock; dates are passed in.
    - Decimal-only arithmetic for every amount, rate and ratio.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from payroll_engines.component_resolver import build_plan, evaluate_plan
    from payroll_engines.effective_dating import plan_supersession
    from payroll_engines.payroll_calculator import calculate_breakdown
    from payroll_engines.statutory import StatutoryRuleSet
"""

from payroll_engines.component_resolver import (
    CalculationType,
    ComponentCategory,
    ComponentDefinition,
    ComponentType,
    EvaluationContext,
    EvaluationPlan,
    PlanStep,
    ResolvedComponent,
    build_plan,
    evaluate_plan,
)
from payroll_engines.effective_dating import (
    SupersessionPlan,
    VersionSpan,
    check_partition,
    find_covering,
    plan_supersession,
)
from payroll_engines.formula import (
    ALLOWED_FUNCTIONS,
    RESERVED_NAMES,
    CompiledFormula,
    evaluate_formula,
    parse_formula,
)
from payroll_engines.payroll_calculator import (
    CalculatorSettings,
    LineItem,
    PayrollBreakdown,
    calculate_breakdown,
)
from payroll_engines.statutory import (
    STATUTORY_ORDER,
    IncomeTaxRule,
    ProfessionalTaxRule,
    ProvidentFundRule,
    StateInsuranceRule,
    StatutoryKind,
    StatutoryRule,
    StatutoryRuleSet,
    TaxSlab,
)
from payroll_engines.tracer import traced_engine

__all__ = [
    # component_resolver
    "CalculationType",
    "ComponentCategory",
    "ComponentDefinition",
    "ComponentType",
    "EvaluationContext",
    "EvaluationPlan",
    "PlanStep",
    "ResolvedComponent",
    "build_plan",
    "evaluate_plan",
    # effective_dating
    "SupersessionPlan",
    "VersionSpan",
    "check_partition",
    "find_covering",
    "plan_supersession",
    # formula
    "ALLOWED_FUNCTIONS",
    "RESERVED_NAMES",
    "CompiledFormula",
    "evaluate_formula",
    "parse_formula",
    # payroll_calculator
    "CalculatorSettings",
    "LineItem",
    "PayrollBreakdown",
    "calculate_breakdown",
    # statutory
    "STATUTORY_ORDER",
    "IncomeTaxRule",
    "ProfessionalTaxRule",
    "ProvidentFundRule",
    "StateInsuranceRule",
    "StatutoryKind",
    "StatutoryRule",
    "StatutoryRuleSet",
    "TaxSlab",
    # tracer
    "traced_engine",
]
