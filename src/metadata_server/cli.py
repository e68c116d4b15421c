"""
Command line entry point for the metadata server.

Loads the answers (refusing to start without them), then serves the public
listener and the administrative reload listener until either one exits.
SIGHUP reloads the answers.
"""

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from .config import AnswersFileWatcher, ServiceSettings, load_settings
from .exceptions import AnswersLoadError
from .monitoring import MetricsCollector, configure_logging, get_logger, initialize_metrics
from .server import create_admin_app, create_app
from .store import AnswersStore, ReloadSource
from .version import get_version_string


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="metadata-server",
        description="Serve per-client metadata answers over HTTP",
    )
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--debug", action="store_true", default=None, help="Debug logging")
    parser.add_argument(
        "--xff", action="store_true", default=None,
        help="X-Forwarded-For header support"
    )
    parser.add_argument("--listen", help="Address to listen to (default :80)")
    parser.add_argument(
        "--listen-reload", "--listenReload", dest="listen_reload",
        help="Address to listen to for reload requests (default 127.0.0.1:8112)"
    )
    parser.add_argument("--answers", help="File containing the answers to respond with")
    parser.add_argument("--log", dest="log_file", help="Log file")
    parser.add_argument("--pid-file", dest="pid_file", help="PID file to write")
    parser.add_argument(
        "--watch", action="store_true", default=None,
        help="Reload when the answers file changes"
    )
    parser.add_argument("--config", "-c", help="Settings file (YAML or JSON)")
    return parser


def write_pid_file(pid_file: Path) -> None:
    """Write the current process id."""
    pid_file.write_text(str(os.getpid()))


def watch_signals(loop: asyncio.AbstractEventLoop, store: AnswersStore) -> None:
    """Reload the answers on SIGHUP."""
    logger = get_logger("cli")

    def on_hangup() -> None:
        logger.info("Received HUP signal", event_type="signal", signal="SIGHUP")
        store.request_reload(ReloadSource.SIGNAL)

    if hasattr(signal, "SIGHUP"):
        loop.add_signal_handler(signal.SIGHUP, on_hangup)


async def serve(settings: ServiceSettings, store: AnswersStore, metrics: MetricsCollector) -> None:
    """Run the public and admin listeners until one of them stops."""
    logger = get_logger("cli")
    log_level = settings.log_level.lower()

    host, port = settings.listen_address
    public = uvicorn.Server(uvicorn.Config(
        create_app(store, settings, metrics),
        host=host,
        port=port,
        log_level=log_level,
        access_log=False,
    ))

    reload_host, reload_port = settings.reload_address
    admin = uvicorn.Server(uvicorn.Config(
        create_admin_app(store, metrics),
        host=reload_host,
        port=reload_port,
        log_level=log_level,
        access_log=False,
    ))

    watch_signals(asyncio.get_running_loop(), store)

    logger.info(f"Listening on {settings.listen}", event_type="listen", listener="public")
    logger.info(
        f"Listening for Reload on {settings.listen_reload}",
        event_type="listen",
        listener="admin",
    )

    tasks = [asyncio.create_task(public.serve()), asyncio.create_task(admin.serve())]
    await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    public.should_exit = True
    admin.should_exit = True
    await asyncio.gather(*tasks)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(get_version_string())
        return 0

    overrides = {
        "debug": args.debug,
        "xff": args.xff,
        "listen": args.listen,
        "listen_reload": args.listen_reload,
        "answers": args.answers,
        "log_file": args.log_file,
        "pid_file": args.pid_file,
        "watch": args.watch,
    }
    try:
        settings = load_settings(args.config, overrides=overrides)
    except (ValueError, FileNotFoundError) as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2

    try:
        configure_logging(settings.log_level, settings.log_file, settings.log_format)
    except OSError as e:
        print(f"Failed to log to file {settings.log_file}: {e}", file=sys.stderr)
        return 1

    logger = get_logger("cli")
    logger.info(f"Starting {get_version_string()}", event_type="startup")

    if settings.pid_file:
        logger.info(f"Writing pid {os.getpid()} to {settings.pid_file}", event_type="pid_file")
        try:
            write_pid_file(settings.pid_file)
        except OSError as e:
            logger.critical(f"Failed to write pid file {settings.pid_file}: {e}")
            return 1

    metrics = initialize_metrics()
    store = AnswersStore(settings.answers, metrics=metrics)
    try:
        store.load_initial()
    except AnswersLoadError as e:
        logger.critical("Cannot startup without a valid answers file", error=str(e))
        return 1

    store.start()
    watcher = None
    if settings.watch:
        watcher = AnswersFileWatcher(store, settings.watch_debounce)
        watcher.start()

    try:
        asyncio.run(serve(settings, store, metrics))
    finally:
        if watcher is not None:
            watcher.stop()
        store.stop(timeout=5.0)

    return 0


if __name__ == "__main__":
    sys.exit(main())
