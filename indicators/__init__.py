from .moving_average import (
    MovingAverageAlgorithm,
    MovingAverageSpec,
    PeriodType,
    compute_daily,
    compute_monthly,
    compute_moving_average,
    end_of_month_anchors,
)

__all__ = [
    'MovingAverageAlgorithm',
    'MovingAverageSpec',
    'PeriodType',
    'compute_daily',
    'compute_monthly',
    'compute_moving_average',
    'end_of_month_anchors',
]
