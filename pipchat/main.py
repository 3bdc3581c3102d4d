#!/usr/bin/env python3
"""
Main entry point for the PiP chat bridge
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .auth import (
    ConsoleOAuthProvider,
    MemoryStateStore,
    OAuthBootstrap,
    TokenIdentityResolver,
    static_nickname,
)
from .client import ConsoleSink, PeerClient
from .config import AppConfig, load_config
from .control.server import ControlServer
from .errors.handling import log_error
from .errors.internal import ConfigError
from .irc.connection import IRCWebSocketConnection
from .logging_config import LoggerConfigurator
from .session.manager import SessionManager


def build_manager(config: AppConfig) -> SessionManager:
    """Wire a session manager with the production collaborators."""
    oauth = OAuthBootstrap(
        client_id=config.client_id,
        redirect_uri=config.redirect_uri,
        provider=ConsoleOAuthProvider(),
        state_store=MemoryStateStore(),
        scope=config.scope,
    )
    resolver = (
        static_nickname(config.nickname) if config.nickname else TokenIdentityResolver()
    )
    return SessionManager(
        upstream_factory=lambda: IRCWebSocketConnection(config.irc_url),
        oauth=oauth,
        nickname_resolver=resolver,
    )


async def serve(config: AppConfig) -> None:
    manager = build_manager(config)
    server = ControlServer(manager, config.control_host, config.control_port)
    try:
        await server.serve_forever()
    finally:
        await manager.shutdown()


async def watch(url: str, channel: str) -> None:
    client = PeerClient(url, channel, ConsoleSink())
    await client.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipchat", description="Twitch chat bridge for Picture-in-Picture overlays"
    )
    parser.add_argument("--config", help="Path to the JSON configuration file")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("serve", help="Run the session manager and local control server")
    watch_parser = sub.add_parser("watch", help="Print a channel's chat via a running manager")
    watch_parser.add_argument("channel")
    watch_parser.add_argument("--url", help="Control server URL (defaults to config)")
    return parser


async def main(argv: list[str] | None = None) -> None:
    """Parse arguments, load configuration and run the requested command."""
    args = build_parser().parse_args(argv)
    if args.command == "watch" and args.url:
        await watch(args.url, args.channel)
        return
    config = load_config(args.config)
    if args.command == "serve":
        if not config.client_id:
            raise ConfigError("client_id is required to serve (set PIPCHAT_CLIENT_ID)")
        logging.info("🚀 Starting PiP chat bridge")
        await serve(config)
    else:
        url = f"ws://{config.control_host}:{config.control_port}"
        await watch(url, args.channel)


def run(argv: list[str] | None = None) -> None:
    """Synchronous entry point for the application.

    Raises:
        SystemExit: If a critical error occurs during execution.
    """
    LoggerConfigurator().configure()
    try:
        asyncio.run(main(argv))
    except KeyboardInterrupt:
        sys.exit(0)
    except asyncio.CancelledError:
        sys.exit(0)
    except ConfigError as e:
        logging.error(f"⚠️ {str(e)}")
        sys.exit(2)
    except Exception as e:
        log_error("Top-level error", e)
        sys.exit(1)
    finally:
        logging.info("✅ Application shutdown complete")
