"""Distance determination from horizon points."""

from .spherical import (
    DistanceDeterminationAlgorithm,
    IterativeSphericalDistanceSolver,
    SphericalDistanceSolver,
    SolverSettings,
    fit_horizon_cone,
)

__all__ = [
    'DistanceDeterminationAlgorithm',
    'IterativeSphericalDistanceSolver',
    'SphericalDistanceSolver',
    'SolverSettings',
    'fit_horizon_cone',
]
