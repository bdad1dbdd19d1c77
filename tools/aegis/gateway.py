#!/usr/bin/env python3
"""Aegis Gateway — process entry point for the auth/users RPC service.

Wires the record store, the services and the router together, then routes
calls between channels and the router via an async MessageBus.

Usage:
    python3 -m aegis.gateway --config .aegis/config.json
    python3 -m aegis.gateway --config .aegis/config.json --log-level DEBUG
    python3 -m aegis.gateway --test-mode --config config.json.example

Architecture:
    Channel → MessageBus.inbound → dispatch_loop → Router
    Router → MessageBus.outbound → outbound_dispatcher → Channel
"""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from typing import Any

from . import diagnostics
from .auth.service import AuthService
from .auth.tokens import TokenCodec
from .bus import MessageBus
from .channels.websocket import WebSocketChannel
from .config import DEFAULT_CONFIG_PATH, ConfigError, load_config
from .diagnostics import log_event
from .router import Router
from .users.service import UserService
from .users.store import UserStore

logger = logging.getLogger("aegis.gateway")


@dataclass
class Services:
    """Everything built from one store handle. ``close()`` releases it."""

    store: UserStore
    auth: AuthService
    users: UserService
    router: Router

    def close(self) -> None:
        self.store.close()


def build_services(config: dict[str, Any]) -> Services:
    """Open the store once and inject it into both services."""
    auth_config = config.get("auth", {})
    store_config = config.get("store", {})

    jwt_secret = auth_config.get("jwt_secret", "")
    if not jwt_secret:
        logger.warning("auth.jwt_secret not configured — issued tokens will be insecure")

    db_path = store_config.get("db_path", ".aegis/users.db")
    store = UserStore(db_path=db_path)
    logger.info(f"UserStore initialized: {db_path}")

    codec = TokenCodec(
        secret=jwt_secret,
        default_ttl=auth_config.get("token_ttl_seconds", 4 * 60 * 60),
    )
    bcrypt_rounds = auth_config.get("bcrypt_rounds", 10)
    auth = AuthService(store, codec, bcrypt_rounds=bcrypt_rounds)
    users = UserService(store, bcrypt_rounds=bcrypt_rounds)
    return Services(store=store, auth=auth, users=users, router=Router(auth, users))


def build_channels(config: dict[str, Any], bus: MessageBus) -> dict[str, Any]:
    """Instantiate channels based on configuration.

    Returns dict of {channel_name: channel_instance}.
    """
    channels = {}

    web_config = config.get("web", {})
    if web_config.get("enabled", False):
        channels[WebSocketChannel.name] = WebSocketChannel(web_config, bus)
        logger.info(f"WebSocket channel enabled on port {web_config.get('port', 8765)}")

    return channels


async def handle_one(bus: MessageBus, router: Router, request) -> None:
    response = await router.handle(request)
    await bus.publish_outbound(response)


async def dispatch_loop(bus: MessageBus, router: Router):
    """Consume inbound requests; each call is handled in its own task.

    Args:
        bus: MessageBus instance
        router: Router that turns a request into a response
    """
    pending: set[asyncio.Task] = set()
    try:
        while True:
            request = await bus.consume_inbound()
            logger.debug(f"Dispatching [{request.channel}:{request.chat_id}] {request.pattern}")
            task = asyncio.create_task(handle_one(bus, router, request))
            pending.add(task)
            task.add_done_callback(pending.discard)
    finally:
        for task in pending:
            task.cancel()


async def outbound_dispatcher(bus: MessageBus, channels: dict[str, Any]):
    """Consume responses and route them to the originating channel.

    Args:
        bus: MessageBus instance
        channels: Dict of {name: channel} for response delivery
    """
    while True:
        msg = await bus.consume_outbound()

        channel = channels.get(msg.channel)
        if channel:
            try:
                await channel.send(msg)
                logger.debug(f"Dispatched to {msg.channel}: {msg.request_id}")
            except Exception as e:
                logger.error(f"Dispatch error [{msg.channel}]: {e}")
        else:
            logger.warning(f"No channel '{msg.channel}' for response {msg.request_id}")


async def stop_tasks(tasks: list) -> None:
    """Cancel background loops and wait for them to finish."""
    for task in tasks:
        task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for task, result in zip(tasks, results):
        if isinstance(result, Exception):
            logger.error(f"Background task {task.get_name()} failed: {result}", exc_info=result)


async def run_gateway(config: dict[str, Any], test_mode: bool = False):
    """Main gateway coroutine.

    Args:
        config: Configuration dictionary
        test_mode: If True, validate config and exit without starting
    """
    diagnostics.configure(config.get("diagnostics", {}).get("event_log"))

    bus = MessageBus()
    services = build_services(config)
    channels = build_channels(config, bus)

    if test_mode:
        print("Aegis gateway — test mode")
        print(f"  Channels: {', '.join(channels) or 'none'}")
        print(f"  Store: {services.store.db_path}")
        print(f"  Patterns: {len(services.router.patterns)}")
        print("Config valid. Exiting test mode.")
        services.close()
        return

    if not channels:
        logger.error("No channels configured. Set web.enabled=true in config.json.")
        services.close()
        return

    log_event("daemon_started", component="aegis-gateway", channels=list(channels))

    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    tasks = []
    try:
        for name, channel in channels.items():
            await channel.start()
            logger.info(f"  ✓ {name} channel started")

        tasks.append(asyncio.create_task(dispatch_loop(bus, services.router)))
        tasks.append(asyncio.create_task(outbound_dispatcher(bus, channels)))

        logger.info("Aegis gateway online")
        await shutdown_event.wait()

    finally:
        logger.info("Shutting down...")
        log_event("daemon_stopped", component="aegis-gateway", channels=list(channels))

        await stop_tasks(tasks)

        for name, channel in channels.items():
            try:
                await channel.stop()
                logger.info(f"  ✓ {name} channel stopped")
            except Exception as e:
                logger.error(f"  ✗ {name} stop error: {e}")

        services.close()
        logger.info("Aegis gateway offline")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="aegis-gateway",
        description="Aegis — credential authentication and user lifecycle RPC service",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config.json (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--test-mode",
        "-t",
        action="store_true",
        help="Validate config and exit without starting",
    )
    parser.add_argument(
        "--log-level",
        "-l",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.json.example to .aegis/config.json", file=sys.stderr)
        return 1

    try:
        asyncio.run(run_gateway(config, test_mode=args.test_mode))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
