"""
Token engine factory for the token service.
"""

from datetime import timedelta
from typing import Optional

from shared.config import TokenServiceConfig, get_config
from shared.logging import configure_logging, get_logger
from shared.metrics import TokenMetrics, get_token_metrics
from .signing import SigningIdentity
from .tokens import TokenEngine, ValidationPolicy


def create_token_engine(
    identity: SigningIdentity,
    config: Optional[TokenServiceConfig] = None,
    *,
    metrics: Optional[TokenMetrics] = None,
    setup_logging: bool = False,
) -> TokenEngine:
    """Create a TokenEngine whose policy and defaults come from configuration."""
    config = config or get_config()
    if setup_logging:
        configure_logging("tokens", config.log_level)

    if metrics is None and config.metrics_enabled:
        metrics = get_token_metrics()

    engine = TokenEngine(
        identity,
        ValidationPolicy.from_config(config),
        default_not_before_offset=timedelta(seconds=config.default_not_before_offset_seconds),
        metrics=metrics,
    )

    get_logger("tokens.main").info(
        "Token engine created",
        env=config.env,
        algorithm=identity.algorithm.value,
        visibility=identity.visibility.value,
        check_expiry=config.check_expiry,
        metrics=metrics is not None,
    )
    return engine
