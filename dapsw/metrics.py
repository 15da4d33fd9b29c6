"""
Metrics collection for the secret webhook.
"""

import time
from collections import defaultdict
from typing import Dict

METRIC_PREFIX = "flyte_dsw"


def get_status_string(success: bool) -> str:
    return "success" if success else "failure"


class MetricsCollector:
    """Collect and export metrics for monitoring."""

    def __init__(self):
        # Counters keyed by label tuples
        self.webhook_requests = defaultdict(int)  # (project, status, operation)
        self.mlp_requests = defaultdict(int)  # (project, status)
        self.mlp_secrets_not_found = defaultdict(int)  # project

        self.start_time = time.time()

    def record_outcome(self, namespace: str, status: str, operation: str):
        """Record the terminal outcome of one admission request."""
        self.webhook_requests[(namespace, status, operation)] += 1

    def record_mlp_request(self, project: str, success: bool):
        """Record a secret lookup against the MLP API."""
        self.mlp_requests[(project, get_status_string(success))] += 1

    def record_secret_not_found(self, project: str):
        """Record a requested secret missing from the MLP project."""
        self.mlp_secrets_not_found[project] += 1

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus format."""
        lines = []

        # Info metric
        lines.append(f"# HELP {METRIC_PREFIX}_info Secret webhook information")
        lines.append(f"# TYPE {METRIC_PREFIX}_info gauge")
        lines.append(f'{METRIC_PREFIX}_info{{version="1.0.0"}} 1')

        # Uptime
        uptime = time.time() - self.start_time
        lines.append(f"# HELP {METRIC_PREFIX}_uptime_seconds Uptime in seconds")
        lines.append(f"# TYPE {METRIC_PREFIX}_uptime_seconds gauge")
        lines.append(f"{METRIC_PREFIX}_uptime_seconds {uptime:.2f}")

        lines.append(
            f"# HELP {METRIC_PREFIX}_webhook_requests_total Number of request processed by Webhook"
        )
        lines.append(f"# TYPE {METRIC_PREFIX}_webhook_requests_total counter")
        for (project, status, operation), count in self.webhook_requests.items():
            lines.append(
                f"{METRIC_PREFIX}_webhook_requests_total"
                f'{{project="{project}",status="{status}",operation="{operation}"}} {count}'
            )

        lines.append(f"# HELP {METRIC_PREFIX}_mlp_requests_total Number of call to MLP API")
        lines.append(f"# TYPE {METRIC_PREFIX}_mlp_requests_total counter")
        for (project, status), count in self.mlp_requests.items():
            lines.append(
                f'{METRIC_PREFIX}_mlp_requests_total{{project="{project}",status="{status}"}} {count}'
            )

        lines.append(
            f"# HELP {METRIC_PREFIX}_mlp_secrets_not_found "
            "Number of occurrence where user requested secrets is not found in MLP API"
        )
        lines.append(f"# TYPE {METRIC_PREFIX}_mlp_secrets_not_found counter")
        for project, count in self.mlp_secrets_not_found.items():
            lines.append(f'{METRIC_PREFIX}_mlp_secrets_not_found{{project="{project}"}} {count}')

        return "\n".join(lines) + "\n"

    def export_json(self) -> Dict:
        """Export metrics as JSON."""
        return {
            "uptime_seconds": time.time() - self.start_time,
            "webhook_requests": [
                {"project": project, "status": status, "operation": operation, "count": count}
                for (project, status, operation), count in self.webhook_requests.items()
            ],
            "mlp_requests": [
                {"project": project, "status": status, "count": count}
                for (project, status), count in self.mlp_requests.items()
            ],
            "mlp_secrets_not_found": dict(self.mlp_secrets_not_found),
        }
