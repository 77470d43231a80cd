'''Entrypoint script for watching a certificate and key pair'''

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Final, Optional

from dotenv import load_dotenv

from certreload.bootup import configure_logging, create_logging_config
from certreload.process.control import validate_once, watch
from certreload.process.events import SHUTDOWN_EVENT

__all__ = ('PARSER', 'parse_args', 'main')

def _parse_period_arg(arg: str) -> float:
    try:
        period: float = float(arg)
    except ValueError:
        raise argparse.ArgumentTypeError(f'Check period must be numeric, got {arg}')

    if period <= 0:
        raise argparse.ArgumentTypeError('Check period must be a positive number of seconds')
    return period

PARSER: argparse.ArgumentParser = argparse.ArgumentParser(prog='certreload',
                                                          description='Load a TLS certificate and key pair, and keep reloading it whenever it changes on disk')
### CLI arguments ###
PARSER.add_argument('config',
                    help='TOML configuration file, defaults to the CERTRELOAD_CONFIG environment variable',
                    type=Path, nargs='?', default=None)

PARSER.add_argument('--period', '-p',
                    help='Override the check reload period (seconds)',
                    type=_parse_period_arg, default=None)

PARSER.add_argument('--log-level', '-l',
                    help='Override the configured log level',
                    required=False, default=None)

PARSER.add_argument('--once',
                    help='Validate the key pair a single time and exit',
                    action='store_true')

def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    args: argparse.Namespace = PARSER.parse_args(argv)

    if args.config is None:
        if not (env_config := os.environ.get('CERTRELOAD_CONFIG')):
            PARSER.error('No configuration file provided, pass one explicitly or set CERTRELOAD_CONFIG')
        args.config = Path(env_config)

    if not args.config.is_file():
        PARSER.error(f'Configuration file {args.config} not found')

    return args

def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args: Final[argparse.Namespace] = parse_args(argv)
    configure_logging(create_logging_config(args.config, log_level=args.log_level))

    if args.once:
        print(validate_once(args.config), flush=True)
        return 0

    loop: Final[asyncio.AbstractEventLoop] = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    watch_task: Final[asyncio.Task[None]] = loop.create_task(watch(args.config, check_reload_period=args.period))

    try:
        loop.run_until_complete(watch_task)
    except KeyboardInterrupt:
        SHUTDOWN_EVENT.set()
        loop.run_until_complete(watch_task)
    finally:
        loop.close()

    return 0

if __name__ == '__main__':
    sys.exit(main())
