"""Command line entry point."""

import argparse
import asyncio
import json
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .domain.errors import ClientError
from .domain.job import JobState
from .infra.config import ClientConfig
from .infra.logger import setup_logging, StructLogger
from .service.client import ScanClient

logger = StructLogger("talaria-cli")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="talaria-scan",
        description="Upload bookshelf photos and stream recognised books as JSON lines.",
    )
    parser.add_argument("images", nargs="+", type=Path, help="JPEG images to scan")
    parser.add_argument("--base-url", help="Override TALARIA_BASE_URL")
    parser.add_argument("--device-id", help="Override TALARIA_DEVICE_ID")
    parser.add_argument("--pings", action="store_true", help="Print keepalive pings too")
    return parser.parse_args(argv)


def _event_line(image: Path, job_id: Optional[str], event) -> str:
    payload = event.model_dump(mode="json", exclude={"image"})
    return json.dumps({"image": str(image), "job_id": job_id, **payload})


async def scan_image(client: ScanClient, image: Path) -> bool:
    """Scan one image, printing its events. Returns True when the job completed."""
    coordinator = client.new_job()
    try:
        await coordinator.submit(image.read_bytes(), client.config.device_id)
        async for event in coordinator.events():
            print(_event_line(image, coordinator.job_id, event), flush=True)
    except ClientError as e:
        print(
            json.dumps(
                {
                    "image": str(image),
                    "job_id": coordinator.job_id,
                    "kind": "client_error",
                    "code": e.code,
                    "retryable": e.retryable,
                    "message": str(e),
                }
            ),
            flush=True,
        )
        return False
    return coordinator.state == JobState.COMPLETED


async def run(args: argparse.Namespace) -> int:
    """Scan every image concurrently."""
    overrides = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.device_id:
        overrides["device_id"] = args.device_id
    if args.pings:
        overrides["yield_pings"] = True
    config = ClientConfig.from_env(**overrides)

    missing = [str(image) for image in args.images if not image.is_file()]
    if missing:
        logger.error("Images not found", images=missing)
        return 2

    logger.info("Starting scans", count=len(args.images), base_url=config.base_url)
    async with ScanClient(config, logger=logger) as client:
        tasks = [asyncio.create_task(scan_image(client, image)) for image in args.images]

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda: [task.cancel() for task in tasks])
            except NotImplementedError:
                # Windows event loops have no signal handlers.
                pass

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    failed = [str(image) for image, ok in zip(args.images, outcomes) if ok is not True]
    if failed:
        logger.warning("Some scans did not complete", images=failed)
        return 1
    logger.info("All scans completed", count=len(args.images))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
