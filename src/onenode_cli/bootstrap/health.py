"""API server health checks.

After kubeadm init the API server takes a while to answer. Readiness is
read from its /readyz endpoint, which kube-apiserver serves to anonymous
clients. The server URL and CA come from the admin kubeconfig.
"""

from __future__ import annotations

import base64
import ssl
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

import httpx
import structlog
import yaml

from ..host import Host
from ..shared.paths import ADMIN_CONF

logger = structlog.get_logger(__name__)

DEFAULT_API_SERVER = "https://127.0.0.1:6443"


@dataclass
class HealthCheckResult:
    """Result of an API server health check."""

    healthy: bool
    url: str = ""
    status_code: int | None = None
    error: str | None = None


def load_kubeconfig(host: Host, kubeconfig: str | PurePosixPath = ADMIN_CONF) -> dict[str, Any]:
    """Parse a kubeconfig file; an absent or empty file yields {}."""
    if not host.exists(kubeconfig):
        return {}
    return yaml.safe_load(host.read_text(kubeconfig)) or {}


def _first_cluster(config: dict[str, Any]) -> dict[str, Any]:
    clusters = config.get("clusters") or []
    if not clusters:
        return {}
    return clusters[0].get("cluster") or {}


class ApiServerHealth:
    """Query kube-apiserver readiness."""

    def __init__(
        self,
        kubeconfig: str | PurePosixPath = ADMIN_CONF,
        timeout_seconds: float = 5.0,
    ):
        """Initialize health checker.

        Args:
            kubeconfig: Host path of the kubeconfig naming the API server.
            timeout_seconds: Timeout for each HTTP request.
        """
        self.kubeconfig = kubeconfig
        self.timeout_seconds = timeout_seconds

    def _verify(self, cluster: dict[str, Any]) -> ssl.SSLContext | bool:
        ca_data = cluster.get("certificate-authority-data")
        if not ca_data:
            return False
        return ssl.create_default_context(cadata=base64.b64decode(ca_data).decode())

    def status(self, host: Host) -> HealthCheckResult:
        """Check /readyz once."""
        try:
            cluster = _first_cluster(load_kubeconfig(host, self.kubeconfig))
        except yaml.YAMLError as e:
            return HealthCheckResult(healthy=False, error=f"Invalid kubeconfig: {e}")
        except OSError as e:
            return HealthCheckResult(healthy=False, error=f"Cannot read kubeconfig: {e}")

        url = (cluster.get("server") or DEFAULT_API_SERVER).rstrip("/")
        try:
            verify = self._verify(cluster)
        except (ssl.SSLError, ValueError) as e:
            return HealthCheckResult(healthy=False, url=url, error=f"Invalid cluster CA: {e}")

        try:
            response = httpx.get(f"{url}/readyz", verify=verify, timeout=self.timeout_seconds)
        except httpx.ConnectError:
            return HealthCheckResult(healthy=False, url=url, error="Connection refused")
        except httpx.TimeoutException:
            return HealthCheckResult(healthy=False, url=url, error="Request timeout")
        except httpx.HTTPError as e:
            return HealthCheckResult(healthy=False, url=url, error=str(e))

        if response.status_code == 200:
            return HealthCheckResult(healthy=True, url=url, status_code=200)
        return HealthCheckResult(
            healthy=False,
            url=url,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}",
        )

    def check(self, host: Host) -> bool:
        """Readiness predicate for polling."""
        result = self.status(host)
        if not result.healthy:
            logger.debug("api server not ready", url=result.url, error=result.error)
        return result.healthy
