"""
Grafana OTLP Metrics Exporter
==============================

Pushes AI provider usage metrics to Grafana Cloud via OTLP.

Metrics exported:
- llm_latency_ms: provider request latency in milliseconds
- llm_prompt_tokens / llm_completion_tokens: token usage per call
- llm_requests_failed: failed provider calls (value 1 per failure)
"""

import base64
import time
from typing import Optional, Dict, List

import httpx

from config import settings
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class GrafanaOTLPExporter:
    """
    Export provider metrics to Grafana Cloud via OTLP HTTP endpoint.

    Every metric is sent as an OTLP gauge data point.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None
    ):
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host.rstrip('/')}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def _attributes(self, values: Dict[str, str]) -> List[dict]:
        attrs = [{"key": "service", "value": {"stringValue": settings.app_name}}]
        for key, value in values.items():
            attrs.append({"key": key, "value": {"stringValue": str(value)}})
        return attrs

    def _payload(self, gauges: Dict[str, tuple], attributes: List[dict]) -> dict:
        timestamp_ns = int(time.time() * 1_000_000_000)
        metrics = [
            {
                "name": name,
                "unit": unit,
                "gauge": {
                    "dataPoints": [
                        {
                            "asInt": int(value),
                            "timeUnixNano": timestamp_ns,
                            "attributes": attributes
                        }
                    ]
                }
            }
            for name, (unit, value) in gauges.items()
        ]
        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [
                            {"key": "service.name", "value": {"stringValue": settings.app_name}},
                            {"key": "service.version", "value": {"stringValue": settings.app_version}},
                            {"key": "deployment.environment", "value": {"stringValue": settings.environment}},
                        ]
                    },
                    "scopeMetrics": [{"metrics": metrics}]
                }
            ]
        }

    async def _push(self, payload: dict) -> bool:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self._url, headers=headers, json=payload)
            if response.status_code in (200, 202):
                return True
            logger.warning(
                "Failed to export metrics to Grafana",
                extra={"status_code": response.status_code, "response": response.text[:500]}
            )
            return False
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Error exporting metrics to Grafana", extra={"error": str(e)})
            return False

    async def export_llm_metrics(
        self,
        model: str,
        latency_ms: int,
        operation: str,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        failed: bool = False
    ) -> bool:
        """
        Export one provider call.

        Args:
            model: Model name used for the call
            latency_ms: Request latency in milliseconds
            operation: embedding, response, sentiment, ...
            prompt_tokens: Prompt tokens reported by the provider
            completion_tokens: Completion tokens reported by the provider
            failed: Whether the call raised

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        gauges = {
            "llm_latency_ms": ("ms", latency_ms),
            "llm_prompt_tokens": ("1", prompt_tokens),
            "llm_completion_tokens": ("1", completion_tokens),
        }
        if failed:
            gauges["llm_requests_failed"] = ("1", 1)

        attributes = self._attributes({"model": model, "operation": operation})
        return await self._push(self._payload(gauges, attributes))


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> Optional[GrafanaOTLPExporter]:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter


def init_grafana_exporter(
    host: str,
    api_key: str,
    instance_id: str
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
    return _grafana_exporter
