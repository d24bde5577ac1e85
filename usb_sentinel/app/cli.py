import argparse
import asyncio
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from usb_sentinel.core.devices import (
    DeviceRecord,
    LoopCallbackExecutor,
    USBMonitor,
    build_providers,
    merge_scans,
)
from usb_sentinel.core.logging_config import LOG_LEVELS, configure_logging
from usb_sentinel.core.logging_utils import get_module_logger
from usb_sentinel.core.paths import CONFIG_PATH
from usb_sentinel.core.settings import MonitorSettings, load_settings_async


logger = get_module_logger("CLI")


def _config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help=f"Settings file (default: {CONFIG_PATH})"
    )
    return parser


def parse_config_path(argv: Optional[list[str]] = None) -> Path:
    """Pick out --config ahead of the full parse, which needs its defaults."""
    known, _ = _config_parser().parse_known_args(argv)
    return known.config


def parse_args(argv: Optional[list[str]], settings: MonitorSettings) -> argparse.Namespace:
    """Parse command-line arguments, taking defaults from ``settings``."""
    parser = argparse.ArgumentParser(
        description="USB Sentinel - watch USB devices connect and disconnect",
        parents=[_config_parser()],
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="Scan once, print the connected devices and exit"
    )

    parser.add_argument(
        "--inputs-only",
        action="store_true",
        help="Only show input devices (keyboards, mice, cameras, ...)"
    )

    parser.add_argument(
        "--interval",
        type=float,
        default=settings.poll_interval,
        help=f"Seconds between scans (default: {settings.poll_interval})"
    )

    parser.add_argument(
        "--providers",
        type=lambda value: tuple(p.strip() for p in value.split(",") if p.strip()),
        default=settings.providers,
        help=f"Comma-separated providers, lowest priority first (default: {','.join(settings.providers)})"
    )

    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        default=settings.log_level,
        help=f"Logging level (default: {settings.log_level})"
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=settings.log_file,
        help="Also write logs to this rotating file"
    )

    args = parser.parse_args(argv)
    args.settings = settings
    return args


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class EventPrinter:
    """Prints device events to stdout, one line per event."""

    def __init__(self, inputs_only: bool = False):
        self.inputs_only = inputs_only

    def on_connected(self, device: DeviceRecord) -> None:
        self._print("Inserted", device)

    def on_disconnected(self, device: DeviceRecord) -> None:
        self._print("Removed", device)

    def _print(self, action: str, device: DeviceRecord) -> None:
        if self.inputs_only and not device.is_input_device:
            return
        print(f"[{_timestamp()}] USB {action} - {device.log_string()}", flush=True)
        if device.is_input_device:
            print(f"    Input device: {device.product_name}", flush=True)


def print_device_list(devices: Sequence[DeviceRecord], inputs_only: bool = False) -> None:
    inputs = [d for d in devices if d.is_input_device]
    shown = inputs if inputs_only else list(devices)

    if not shown:
        if inputs_only:
            print(f"No input devices found ({len(devices)} total devices)")
        else:
            print("No USB devices detected")
    for device in shown:
        print(device.display_string())

    print(f"Showing {len(shown)} of {len(devices)} total devices ({len(inputs)} input devices)")


async def list_devices(args: argparse.Namespace) -> int:
    providers = build_providers(args.providers, wmi_timeout=args.settings.wmi_timeout)
    scans = []
    for provider in providers:
        await asyncio.to_thread(provider.open)
        try:
            scans.append(await asyncio.to_thread(provider.scan_safely))
        finally:
            await asyncio.to_thread(provider.close)

    print_device_list(list(merge_scans(scans).values()), inputs_only=args.inputs_only)
    return 0


async def watch_devices(args: argparse.Namespace) -> int:
    loop = asyncio.get_running_loop()
    settings = args.settings

    monitor = USBMonitor(
        build_providers(args.providers, wmi_timeout=settings.wmi_timeout),
        poll_interval=args.interval,
        shutdown_timeout=settings.shutdown_timeout,
        announce_existing=settings.announce_existing,
        callback_executor=LoopCallbackExecutor(loop),
    )
    monitor.subscribe(EventPrinter(inputs_only=args.inputs_only))

    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler

    await asyncio.to_thread(monitor.initialize)
    logger.info("Watching USB devices (Ctrl+C to stop)")

    try:
        await stop.wait()
    finally:
        await asyncio.to_thread(monitor.cleanup)

    return 0


async def main(argv: Optional[list[str]] = None) -> int:
    settings = await load_settings_async(parse_config_path(argv))
    args = parse_args(argv, settings)

    configure_logging(
        args.log_level,
        log_file=args.log_file,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )

    if args.interval <= 0:
        logger.error("--interval must be positive")
        return 2

    try:
        if args.list:
            return await list_devices(args)
        return await watch_devices(args)
    except ValueError as e:
        logger.error("%s", e)
        return 2


def run(argv: Optional[list[str]] = None) -> int:
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
