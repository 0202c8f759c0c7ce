"""Build a registry from configuration."""

import logging
from typing import Any, Dict, Optional

from etix.errors import RegistryError
from etix.models.config import EtixConfig
from etix.models.registry import Role
from etix.notifications import NotificationLog
from etix.registry import TicketRegistry

logger = logging.getLogger(__name__)


async def bootstrap_registry(config: EtixConfig) -> TicketRegistry:
    """
    Create a registry and, if configured, its initial event.

    A failing initial event is logged and leaves the registry without events;
    it never prevents startup.

    Args:
        config: Application configuration

    Returns:
        The initialized registry
    """
    registry = TicketRegistry(
        name=config.tickets_name,
        symbol=config.tickets_symbol,
        admin=config.admin_principal,
        notifications=NotificationLog(
            max_history=config.notification_history_limit,
            subscriber_queue_size=config.notification_queue_size,
        ),
    )

    logger.info("=" * 50)
    logger.info("Event ticket registry")
    logger.info("=" * 50)
    logger.info(f"Administrator: {config.admin_principal}")
    logger.info(f"Registry name: {config.tickets_name}")
    logger.info(f"Registry symbol: {config.tickets_symbol}")

    if config.create_initial_event:
        await create_initial_event(registry, config)

    return registry


async def create_initial_event(registry: TicketRegistry, config: EtixConfig) -> Optional[int]:
    """Create the event described by the configuration, returning its id"""
    organizer = config.initial_organizer
    logger.info(f"Creating initial event '{config.event_name}'")
    logger.info(f"Organizer: {organizer}")
    logger.info(f"Max supply: {config.max_supply or 'Unlimited'}")
    logger.info(f"Base URI: {config.base_uri or 'Not set'}")

    try:
        event_id = await registry.create_event(
            config.admin_principal,
            config.event_name,
            organizer,
            config.max_supply,
            config.base_uri,
        )
    except RegistryError as e:
        logger.error(f"Failed to create initial event: {e.message}")
        return None

    logger.info(f"Initial event created with ID: {event_id}")
    return event_id


async def registry_summary(registry: TicketRegistry) -> Dict[str, Any]:
    """Deployment summary suitable for printing as JSON"""
    stats = await registry.get_stats()
    return {
        "name": registry.name,
        "symbol": registry.symbol,
        "administrators": await registry.role_members(Role.ADMIN),
        **stats,
    }
