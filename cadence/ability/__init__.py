"""
Ability estimation (IRT).

Components:
- models: item parameters, 1PL/2PL/3PL response functions, Fisher information
- quadrature: Gauss-Hermite and uniform integration over a normal prior
- irt: MLE / EAP theta estimation and adaptive item selection
- calibration: Bock-Aitkin EM estimation of 2PL item parameters
"""
from cadence.ability.calibration import (
    DEFAULT_CALIBRATION_CONFIG,
    CalibrationConfig,
    CalibrationReport,
    ItemCalibrationResult,
    calibrate_items,
    item_estimate,
)
from cadence.ability.irt import (
    estimate_theta_eap,
    estimate_theta_mle,
    kl_index,
    select_item_kl,
    select_next_item,
    update_theta,
)
from cadence.ability.models import (
    DEFAULT_ESTIMATION_CONFIG,
    IRTResponse,
    ItemParameter,
    ThetaEstimate,
    ThetaEstimationConfig,
    fisher_information,
    item_information_table,
    probability,
    probability_1pl,
    probability_2pl,
    probability_3pl,
    test_information,
)
from cadence.ability.quadrature import (
    QuadratureRule,
    compute_eap,
    gauss_hermite_rule,
    integrate_normal,
    uniform_rule,
)

__all__ = [
    # Models
    "DEFAULT_ESTIMATION_CONFIG",
    "IRTResponse",
    "ItemParameter",
    "ThetaEstimate",
    "ThetaEstimationConfig",
    "fisher_information",
    "item_information_table",
    "probability",
    "probability_1pl",
    "probability_2pl",
    "probability_3pl",
    "test_information",
    # Estimation
    "estimate_theta_eap",
    "estimate_theta_mle",
    "kl_index",
    "select_item_kl",
    "select_next_item",
    "update_theta",
    # Quadrature
    "QuadratureRule",
    "compute_eap",
    "gauss_hermite_rule",
    "integrate_normal",
    "uniform_rule",
    # Calibration
    "DEFAULT_CALIBRATION_CONFIG",
    "CalibrationConfig",
    "CalibrationReport",
    "ItemCalibrationResult",
    "calibrate_items",
    "item_estimate",
]
