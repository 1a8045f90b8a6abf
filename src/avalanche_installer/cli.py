# src/avalanche_installer/cli.py

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from avalanche_installer import __version__, log_utils
from avalanche_installer import config as config_utils
from avalanche_installer.download.fetcher import create_fetcher
from avalanche_installer.download.products import PRODUCTS
from avalanche_installer.exceptions import InstallerError
from avalanche_installer.platforms import Arch, OperatingSystem
from avalanche_installer.storage.s3 import S3ObjectStore
from avalanche_installer.storage.sync import (
    sync_binary_and_plugins,
    upload_binary_and_plugins,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="avalanche-installer",
        description=(
            "Download avalanchego/subnet-evm releases and mirror them through S3."
        ),
    )
    parser.add_argument("--config", help="Path to the configuration YAML file")
    parser.add_argument(
        "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)", default=None
    )
    parser.add_argument("--log-dir", help="Also write logs to this directory")

    subparsers = parser.add_subparsers(dest="command")

    download_parser = subparsers.add_parser(
        "download", help="Download and unpack a release from GitHub"
    )
    download_parser.add_argument("product", choices=sorted(PRODUCTS))
    download_parser.add_argument(
        "--arch", choices=[a.value for a in Arch], help="Defaults to the host"
    )
    download_parser.add_argument(
        "--os",
        dest="os_name",
        choices=[o.value for o in OperatingSystem],
        help="Defaults to the host",
    )
    download_parser.add_argument(
        "--tag", help="Release tag (e.g. v1.9.16); defaults to the latest stable"
    )
    download_parser.add_argument(
        "--install-dir", help="Copy the binary (and plugins) into this directory"
    )

    sync_parser = subparsers.add_parser(
        "s3-sync", help="Download a binary and its plugins from S3"
    )
    sync_parser.add_argument("--bucket", required=True)
    sync_parser.add_argument("--binary-key", required=True)
    sync_parser.add_argument("--target-binary", required=True)
    sync_parser.add_argument("--plugin-prefix", required=True)
    sync_parser.add_argument("--target-plugin-dir", required=True)
    sync_parser.add_argument(
        "--overwrite", action="store_true", help="Replace files that already exist"
    )

    upload_parser = subparsers.add_parser(
        "s3-upload", help="Upload a binary and its plugins to S3"
    )
    upload_parser.add_argument("--bucket", required=True)
    upload_parser.add_argument("--binary", required=True)
    upload_parser.add_argument("--binary-key", required=True)
    upload_parser.add_argument("--plugins-dir")
    upload_parser.add_argument("--plugin-prefix")

    subparsers.add_parser("version", help="Display the installer version")
    return parser


def _configure_logging(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    level = args.log_level or config.get("LOG_LEVEL")
    if level:
        log_utils.set_log_level(str(level))
    log_dir = args.log_dir or config.get("LOG_DIR")
    if log_dir:
        log_utils.add_file_logging(Path(log_dir), str(level or "INFO"))


def _create_store(config: Dict[str, Any]) -> S3ObjectStore:
    return S3ObjectStore(
        region=config.get("S3_REGION"),
        endpoint_url=config.get("S3_ENDPOINT_URL"),
    )


async def run_download(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    fetcher = create_fetcher(config)
    async with fetcher.client:
        if args.install_dir:
            artifact = await fetcher.install(
                args.product, args.install_dir, args.arch, args.os_name, args.tag
            )
        else:
            artifact = await fetcher.fetch(
                args.product, args.arch, args.os_name, args.tag
            )
    log_utils.logger.info(f"{args.product} path: {artifact.binary_path}")
    if artifact.plugins_dir is not None:
        log_utils.logger.info(f"plugins path: {artifact.plugins_dir}")


async def run_s3_sync(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    max_attempts, base_delay = config_utils.get_store_retry_settings(config)
    report = await sync_binary_and_plugins(
        _create_store(config),
        args.overwrite,
        args.bucket,
        args.binary_key,
        args.target_binary,
        args.plugin_prefix,
        args.target_plugin_dir,
        max_attempts=max_attempts,
        base_delay=base_delay,
    )
    log_utils.logger.info(
        f"sync complete: {len(report.downloaded)} downloaded, "
        f"{len(report.skipped)} skipped"
    )


async def run_s3_upload(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    max_attempts, base_delay = config_utils.get_store_retry_settings(config)
    await upload_binary_and_plugins(
        _create_store(config),
        args.bucket,
        args.binary,
        args.binary_key,
        args.plugins_dir,
        args.plugin_prefix,
        max_attempts=max_attempts,
        base_delay=base_delay,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        log_utils.logger.info(f"avalanche-installer v{__version__}")
        return 0
    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = config_utils.load_config(args.config)
        _configure_logging(args, config)

        if args.command == "download":
            asyncio.run(run_download(args, config))
        elif args.command == "s3-sync":
            asyncio.run(run_s3_sync(args, config))
        elif args.command == "s3-upload":
            if bool(args.plugins_dir) != bool(args.plugin_prefix):
                parser.error("--plugins-dir and --plugin-prefix must be given together")
            asyncio.run(run_s3_upload(args, config))
    except InstallerError as e:
        log_utils.logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        log_utils.logger.warning("Interrupted")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
