# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from pydantic import BaseModel

from fastapi import APIRouter, status, Response

import common.config as conf


class HealthStatus(Enum):
    """Indicator of system health."""

    healthy = "HEALTHY"
    unhealthy = "UNHEALTHY"


class HealthResponse(BaseModel):
    """Response body model for health request operation.

    May only contain `HealthStatus` fields. Those can be set with boolean values,
    which get converted before the model is returned to the client."""

    http_server_connectivity: HealthStatus = HealthStatus.unhealthy
    """Always healthy once the http server answers."""

    def convert_from_bool(self) -> None:
        '''Converts every boolean field into its `HealthStatus` representation.'''
        for k, v in iter(self):
            if isinstance(v, bool):
                setattr(self, k, HealthStatus.healthy if v else HealthStatus.unhealthy)

    def is_healthy(self) -> bool:
        """Summarizes all checks performed."""
        return all(v == HealthStatus.healthy for _, v in iter(self))


class HealthAPIRouter(APIRouter):
    """Api router for the common health endpoints
    `/health/debug`, `/health/liveness` and `/health/readiness`.

    Applications add their own checks by subclassing `HealthResponse` and this router,
    overwriting the `_build_*` methods and, where additional dependencies are needed,
    the `get_*` endpoint methods.
    """

    def __init__(
        self,
        readiness_response_model: type[HealthResponse] = HealthResponse,
        liveness_response_model: type[HealthResponse] = HealthResponse,
        debug_response_model: type[HealthResponse] = HealthResponse,
        *args,
        **kwargs,
    ) -> None:
        super().__init__(prefix="/health", tags=["Health"], *args, **kwargs)
        probes = [
            ("/debug", self.get_debug_probe, debug_response_model, "Provides information regarding debug and config states."),
            ("/liveness", self.get_liveness_probe, liveness_response_model, "Determines whether the application instance needs to be restarted."),
            ("/readiness", self.get_readiness_probe, readiness_response_model, "Determines whether the application instance is ready to accept requests."),
        ]
        for path, endpoint, model, description in probes:
            self.add_api_route(
                path,
                endpoint=endpoint,
                description=description,
                responses={
                    status.HTTP_200_OK: {"model": model},
                    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": model},
                },
            )

    def _resolve_probe(self, result: HealthResponse, response: Response) -> HealthResponse:
        """Interprets the `result` of the checks and sets the http status accordingly."""
        result.http_server_connectivity = HealthStatus.healthy
        result.convert_from_bool()
        response.status_code = status.HTTP_200_OK if result.is_healthy() else status.HTTP_503_SERVICE_UNAVAILABLE
        return result

    def _build_debug_probe(self, result: HealthResponse, response: Response, config: conf.Config) -> HealthResponse:
        return self._resolve_probe(result, response)

    def get_debug_probe(self, response: Response, config: conf.inject) -> HealthResponse:
        """Provides information regarding debug and config states."""
        return self._build_debug_probe(HealthResponse(), response, config)

    def _build_liveness_probe(self, result: HealthResponse, response: Response, config: conf.Config) -> HealthResponse:
        """Checks for issues which could be resolved through an application instance restart."""
        return self._resolve_probe(result, response)

    def get_liveness_probe(self, response: Response, config: conf.inject) -> HealthResponse:
        """Determines whether the application instance needs to be restarted."""
        return self._build_liveness_probe(HealthResponse(), response, config)

    def _build_readiness_probe(self, result: HealthResponse, response: Response, config: conf.Config) -> HealthResponse:
        """Checks for issues which prevent the application from functioning properly."""
        return self._resolve_probe(result, response)

    def get_readiness_probe(self, response: Response, config: conf.inject) -> HealthResponse:
        """Determines whether the application instance is ready to accept requests."""
        return self._build_readiness_probe(HealthResponse(), response, config)
