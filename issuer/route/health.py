# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""This file defines the custom health checks for the application."""
import logging

from fastapi import Response

from common import health
import issuer.config as conf
import issuer.signer as sig
import issuer.cache.transient_store as ts

_logger = logging.getLogger(__name__)


class DebugHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    config_vcs_url_present: health.HealthStatus = health.HealthStatus.unhealthy
    config_cms_url_present: health.HealthStatus = health.HealthStatus.unhealthy
    config_wallet_url_present: health.HealthStatus = health.HealthStatus.unhealthy


class ReadinessHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    store_connectivity: health.HealthStatus = health.HealthStatus.unhealthy


class LivelinessHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    signing_key_is_available: health.HealthStatus = health.HealthStatus.unhealthy


class IssuerHealthAPIRouter(health.HealthAPIRouter):
    def __init__(self) -> None:
        super().__init__(
            readiness_response_model=ReadinessHealthResponse,
            liveness_response_model=LivelinessHealthResponse,
            debug_response_model=DebugHealthResponse,
        )

    def _build_readiness_probe(
        self,
        result: ReadinessHealthResponse,
        response: Response,
        config: conf.IssuerConfig,
        store: ts.TransientStore,
    ) -> ReadinessHealthResponse:
        try:
            result.store_connectivity = store.ping()
        except ts.StoreError:
            _logger.exception("Health check for the transient store errors.")

        return super()._build_readiness_probe(result, response, config)

    def get_readiness_probe(
        self,
        response: Response,
        config: conf.inject,
        store: ts.inject,
    ):
        return self._build_readiness_probe(
            ReadinessHealthResponse(),
            response,
            config,
            store,
        )

    def _build_liveness_probe(
        self,
        result: LivelinessHealthResponse,
        response: Response,
        config: conf.IssuerConfig,
        signer: sig.Signer,
    ) -> LivelinessHealthResponse:
        """Provides information regarding issues which could be
        resolved through a application instance restart."""
        try:
            signer.get_public_jwk()
            result.signing_key_is_available = health.HealthStatus.healthy
        except Exception:
            _logger.exception("Cannot get signing public key.")

        return super()._build_liveness_probe(result, response, config)

    def get_liveness_probe(
        self,
        response: Response,
        config: conf.inject,
        signer: sig.inject,
    ) -> LivelinessHealthResponse:
        """Determines whether the application instance needs to be restarted."""
        return self._build_liveness_probe(
            result=LivelinessHealthResponse(),
            response=response,
            config=config,
            signer=signer,
        )

    def _build_debug_probe(
        self,
        result: DebugHealthResponse,
        response: Response,
        config: conf.IssuerConfig,
    ) -> DebugHealthResponse:
        result.config_vcs_url_present = bool(config.vcs_url)
        result.config_cms_url_present = bool(config.cms_url)
        result.config_wallet_url_present = bool(config.wallet_url)
        return super()._build_debug_probe(result, response, config)

    def get_debug_probe(
        self,
        response: Response,
        config: conf.inject,
    ):
        return self._build_debug_probe(
            DebugHealthResponse(),
            response,
            config,
        )


router = IssuerHealthAPIRouter()
