"""Load the published bundle once and serve predictions over HTTP."""

import argparse
import logging

import uvicorn

from claim_frequency.config import StoreConfig
from claim_frequency.logging_utils import setup_logging
from claim_frequency.serving.startup import build_service

log = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser()
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--name", default=None, help="Artifact name (defaults to the configured name)")
    p.add_argument("--version", type=int, default=None, help="Pin a version instead of the latest")
    p.add_argument("--log-level", default="INFO")
    return p.parse_args()


def main(*, host: str, port: int, name: str | None, version: int | None, log_level: str) -> None:
    cfg = StoreConfig.from_env(name=name)
    app = build_service(cfg, version=version)
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())


if __name__ == "__main__":
    args = parse_args()
    setup_logging(args.log_level)
    try:
        main(host=args.host, port=args.port, name=args.name, version=args.version, log_level=args.log_level)
    except Exception:
        log.exception("serve startup failed")
        raise
