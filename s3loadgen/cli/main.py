import sys
import re
import logging
import argparse
import asyncio

import uvloop

from s3loadgen.configuration import (
    S3_ENDPOINT, S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_USE_SSL, S3_REGION,
    BUCKET_LOCATION, WRITE_BUCKET_NAME, READ_BUCKET_NAME,
    WRITE_INTERVAL_SECONDS, READ_INTERVAL_SECONDS, PAYLOAD_SIZE_BYTES, CORPUS_SIZE,
    MAX_IN_FLIGHT, WARM_UP_MODE, WARM_UP_MODES, SHUTDOWN_GRACE_SECONDS,
    METRICS_PORT, PROGRESS_INTERVAL_SECONDS, DEFAULT_LOG_LEVEL, DEFAULT_STORAGE, STORAGE_TYPES,
)

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> float:
    """Parse '250ms', '1.5s', '2m', '1h' or bare seconds into seconds."""
    match = _DURATION_PATTERN.match(value)
    if not match:
        raise argparse.ArgumentTypeError(f"Invalid duration: {value!r} (examples: 250ms, 1.5s, 2m)")
    seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2) or "s"]
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"Duration must be positive: {value!r}")
    return seconds


def setup_logging(level_name: str) -> None:
    """Configure root logging once; unknown levels fall back to info."""
    level = logging.getLevelName(level_name.upper())
    valid = isinstance(level, int)

    if not logging.root.handlers:
        logging.basicConfig(format='%(asctime)s - %(levelname)s - %(message)s')
    logging.root.setLevel(level if valid else logging.INFO)

    if not valid:
        logger.warning(f"Impossible to parse log level '{level_name}', fallback to info")


class LoadGenCLI:
    """CLI interface for the S3 load generator."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the main argument parser."""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument('-l', '--log-level', default=DEFAULT_LOG_LEVEL,
                            help=f'Log level (default: {DEFAULT_LOG_LEVEL})')
        common.add_argument('--storage', choices=STORAGE_TYPES, default=DEFAULT_STORAGE,
                            help=f'Storage type to use (default: {DEFAULT_STORAGE})')
        common.add_argument('-e', '--endpoint', default=S3_ENDPOINT,
                            help=f'S3 endpoint host:port (default: {S3_ENDPOINT})')
        common.add_argument('-a', '--access-key', default=S3_ACCESS_KEY_ID,
                            help='S3 access key ID')
        common.add_argument('-k', '--secret-key', default=S3_SECRET_ACCESS_KEY,
                            help='S3 secret key')
        common.add_argument('-s', '--ssl', action='store_true', default=S3_USE_SSL,
                            help='Use SSL (default disabled)')
        common.add_argument('--region', default=S3_REGION,
                            help=f'Signing region (default: {S3_REGION})')
        common.add_argument('--location', default=BUCKET_LOCATION,
                            help='Location constraint for created buckets')
        common.add_argument('--write-bucket', default=WRITE_BUCKET_NAME,
                            help=f'Bucket for steady-state writes (default: {WRITE_BUCKET_NAME})')
        common.add_argument('--read-bucket', default=READ_BUCKET_NAME,
                            help=f'Bucket holding the read corpus (default: {READ_BUCKET_NAME})')
        common.add_argument('--payload-size', type=int, default=PAYLOAD_SIZE_BYTES,
                            help=f'Object size in bytes (default: {PAYLOAD_SIZE_BYTES})')
        common.add_argument('--corpus-size', type=int, default=CORPUS_SIZE,
                            help=f'Number of objects in the read corpus (default: {CORPUS_SIZE})')

        parser = argparse.ArgumentParser(
            prog='s3-loadgen',
            description='Synthetic read/write load generator for S3-compatible object stores',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Fill the read bucket only
  s3-loadgen populate -e minio:9000 -a ACCESS -k SECRET

  # Write every 250ms, read every 100ms, metrics on :9090
  s3-loadgen run -e minio:9000 -a ACCESS -k SECRET --write-interval 250ms

  # Ten second dry run against the in-memory store
  s3-loadgen run --storage memory --duration 10s --corpus-size 50
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        run_parser = subparsers.add_parser('run', parents=[common], help='Run the workload')
        run_parser.add_argument('--write-interval', type=parse_duration, default=WRITE_INTERVAL_SECONDS,
                                help=f'Time between writes (default: {WRITE_INTERVAL_SECONDS}s)')
        run_parser.add_argument('--read-interval', type=parse_duration, default=READ_INTERVAL_SECONDS,
                                help=f'Time between reads (default: {READ_INTERVAL_SECONDS}s)')
        run_parser.add_argument('--max-in-flight', type=int, default=MAX_IN_FLIGHT,
                                help=f'Operations allowed in flight before ticks are dropped (default: {MAX_IN_FLIGHT})')
        run_parser.add_argument('--warm-up', choices=WARM_UP_MODES, default=WARM_UP_MODE,
                                help=f'Fill the read corpus before (block) or during (background) the workload (default: {WARM_UP_MODE})')
        run_parser.add_argument('--duration', type=parse_duration, default=None,
                                help='Stop after this long (default: run until interrupted)')
        run_parser.add_argument('--shutdown-grace', type=float, default=SHUTDOWN_GRACE_SECONDS,
                                help=f'Seconds in-flight operations may finish after stop (default: {SHUTDOWN_GRACE_SECONDS})')
        run_parser.add_argument('--metrics-port', type=int, default=METRICS_PORT,
                                help=f'Prometheus metrics port, 0 disables (default: {METRICS_PORT})')
        run_parser.add_argument('--progress-interval', type=float, default=PROGRESS_INTERVAL_SECONDS,
                                help=f'Seconds between progress lines, 0 disables (default: {PROGRESS_INTERVAL_SECONDS})')

        subparsers.add_parser('populate', parents=[common], help='Fill the read bucket only')

        return parser

    def _create_runner(self, args, **overrides):
        from s3loadgen.cli.runner import LoadGenRunner
        from s3loadgen.common.storage_factory import create_storage_system
        from s3loadgen.persistence.prom import LoadGenMetrics

        max_in_flight = getattr(args, 'max_in_flight', MAX_IN_FLIGHT)
        storage_system = create_storage_system(
            args.storage,
            endpoint=args.endpoint,
            access_key_id=args.access_key,
            secret_access_key=args.secret_key,
            use_ssl=args.ssl,
            region=args.region,
            max_in_flight=max_in_flight,
        )
        return LoadGenRunner(
            storage_system,
            metrics=LoadGenMetrics(port=getattr(args, 'metrics_port', METRICS_PORT)),
            write_bucket=args.write_bucket,
            read_bucket=args.read_bucket,
            bucket_location=args.location,
            payload_size=args.payload_size,
            corpus_size=args.corpus_size,
            max_in_flight=max_in_flight,
            **overrides,
        )

    async def run_load(self, args):
        """Run the full workload."""
        from s3loadgen.algorithms.corpus import CorpusPopulationError
        from s3loadgen.systems.errors import StorageError

        try:
            runner = self._create_runner(
                args,
                write_interval=args.write_interval,
                read_interval=args.read_interval,
                warm_up_mode=args.warm_up,
                shutdown_grace_seconds=args.shutdown_grace,
                progress_interval=args.progress_interval,
            )
            runner.install_signal_handlers()
            if args.metrics_port:
                runner.metrics.start_server()

            logger.info("=== Load Generation ===")
            await runner.run(duration=args.duration)
            return 0

        except (StorageError, CorpusPopulationError) as e:
            logger.error(f"Cannot run load generation: {e}")
            return 1
        except ValueError as e:
            logger.error(f"Invalid configuration: {e}")
            return 1

    async def run_populate(self, args):
        """Fill the read bucket."""
        from s3loadgen.algorithms.corpus import CorpusPopulationError
        from s3loadgen.systems.errors import StorageError

        try:
            runner = self._create_runner(args)

            logger.info("=== Populate Read Corpus ===")
            report = await runner.populate()

            if report.failed:
                logger.error(f"Populate finished with {report.failed} failed writes: {report}")
                return 1
            logger.info(f"Populate completed successfully: {report}")
            return 0

        except (StorageError, CorpusPopulationError) as e:
            logger.error(f"Cannot populate read corpus: {e}")
            return 1
        except ValueError as e:
            logger.error(f"Invalid configuration: {e}")
            return 1

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        setup_logging(parsed_args.log_level)

        try:
            if parsed_args.command == 'run':
                return asyncio.run(self.run_load(parsed_args))
            elif parsed_args.command == 'populate':
                return asyncio.run(self.run_populate(parsed_args))
            else:
                logger.error(f"Unknown command: {parsed_args.command}")
                return 1

        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1


def main():
    """Main entry point."""
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

    cli = LoadGenCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
