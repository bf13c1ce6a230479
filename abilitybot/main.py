"""Main entry point for abilitybot.

Initializes logging in two phases (defaults then config-driven),
builds the store, sender, extensions and bot, and runs the polling
loop with graceful shutdown on SIGTERM/SIGINT.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper for the ``abilitybot`` console script.
"""

import asyncio
import signal
import sys

import structlog

from .logging_config import setup_logging


async def main():
    """Main async entry point."""
    setup_logging()
    logger = structlog.get_logger("abilitybot")

    from . import __version__
    from .bot import AbilityBot
    from .config import get_config
    from .db import SqliteDBContext
    from .exceptions import ConfigError
    from .extension_loader import ExtensionLoader
    from .telegram import TelegramSender
    from .toggle import toggle_from_settings

    logger.info("abilitybot_starting", version=__version__)

    try:
        config = get_config()
    except ConfigError as e:
        logger.error("config_load_failed", error=str(e))
        sys.exit(2)
    if not config.validate():
        sys.exit(2)

    setup_logging(config)

    db = SqliteDBContext(config.db_path)
    sender = TelegramSender(
        config.bot_token,
        api_url=config.api_url,
        request_timeout=config.request_timeout,
    )
    loader = ExtensionLoader(
        extensions_dir=config.extensions_dir,
        settings=config.settings,
        sender=sender,
        db=db,
        data_dir=config.db_path.parent / "extensions",
    )
    extensions = loader.discover_and_load()

    # DuplicateAbilityName propagates: the bot must not start
    bot = AbilityBot(
        config.bot_username,
        config.creator_id,
        db,
        sender,
        extensions=extensions,
        toggle=toggle_from_settings(config.toggle_settings),
    )
    loader.attach_bot(bot)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: no add_signal_handler
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    try:
        bot_task = asyncio.create_task(bot.run(config.poll_timeout))
        await shutdown_event.wait()

        bot_task.cancel()
        try:
            await bot_task
        except asyncio.CancelledError:
            pass

    except Exception as e:
        logger.error("bot_error", error=str(e))
        raise
    finally:
        await bot.stop()
        logger.info("abilitybot_stopped")


def run():
    """Synchronous entry point for the ``abilitybot`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except SystemExit as e:
        sys.exit(e.code)


if __name__ == "__main__":
    run()
