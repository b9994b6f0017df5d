"""
OWASP Nest Health: a read-only dashboard over OWASP Nest data with
project health scores.
"""

from nest_health.health import calculate_project_health
from nest_health.models import HealthMetrics, HealthScore

__all__ = [
    "calculate_project_health",
    "HealthMetrics",
    "HealthScore",
]
