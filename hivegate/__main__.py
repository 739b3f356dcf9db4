"""
hivegate: HTTP gateway over a hive-partitioned, two-tier object store
"""

import argparse
import asyncio
import inspect
import logging
import os
import sys
from pathlib import Path

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from hivegate.config import ENV_PREFIX, SegmentPolicy, UploadLockScope, get_settings
from hivegate.connections import tiered_storage
from hivegate.errors import RemoteUnavailable


def run(args):
    settings = get_settings()
    port = int(args.port or settings.port)
    logging.info(f"Starting server at port {port}, debug={not args.nodebug}, local root={settings.local_root}")
    if settings.remote_enabled:
        logging.info(f"Remote storage: {settings.s3_host}, bucket {settings.s3_bucket}")
    else:
        logging.warning("No remote storage configured - objects are only stored in the local tier")
    logging.info(
        "To change server config, create an .env file and/or set environment parameters,\n"
        f"{' ' * 26}see hivegate/config.py for more information.\n"
        f"{' ' * 26}You can also run `python -m hivegate create-env` to create a .env settings file\n"
    )
    log_config = "logging.yml" if Path("logging.yml").exists() else LOGGING_CONFIG
    uvicorn.run("hivegate.api:app", host="0.0.0.0", reload=not args.nodebug, port=port, log_config=log_config)


async def check_remote(_args) -> None:
    settings = get_settings()
    if not settings.remote_enabled:
        logging.error("Remote storage is not configured (need s3_host, s3_bucket, s3_access_key and s3_secret_key)")
        sys.exit(1)
    try:
        async with tiered_storage(settings):
            logging.info(f"Bucket {settings.s3_bucket} at {settings.s3_host} is reachable")
    except RemoteUnavailable as e:
        logging.error(e.message)
        sys.exit(1)


def show_config(_args):
    settings = get_settings()
    print(f"# Reading settings from environment and {settings.env_file}")
    for fieldname, value in settings.model_dump().items():
        if fieldname == "env_file":
            continue
        if value is None:
            print(f"#{ENV_PREFIX}{fieldname}=")
        else:
            if isinstance(value, (SegmentPolicy, UploadLockScope)):
                value = value.value
            print(f"{ENV_PREFIX}{fieldname}={value}")


def create_env(args):
    if os.path.exists(".env"):
        print("*** File .env already exists, quitting ***")
        sys.exit(1)

    settings = get_settings()
    with open(".env", "w") as f:
        for fieldname, fieldinfo in type(settings).model_fields.items():
            if fieldname == "env_file":
                continue
            if doc := fieldinfo.description:
                f.write(f"# {doc}\n")
            if isinstance(fieldinfo.default, (SegmentPolicy, UploadLockScope)):
                f.write("# Valid options:\n")
                for option in type(fieldinfo.default):
                    doc = (option.__doc__ or "").replace("\n", " ")
                    f.write(f"# - {option.value}: {doc}\n")
            if fieldname == "local_root" and args.local_root:
                f.write(f"{ENV_PREFIX}{fieldname}={args.local_root}\n\n")
            else:
                f.write(f"#{ENV_PREFIX}{fieldname}=\n\n")
    os.chmod(".env", 0o600)
    print("*** Created .env file ***")


def main():
    parser = argparse.ArgumentParser(description=__doc__, prog="python -m hivegate")

    subparsers = parser.add_subparsers(dest="action", title="action", help="Action to perform:", required=True)
    p = subparsers.add_parser("run", help="Run the gateway")
    p.add_argument(
        "--no-debug",
        action="store_true",
        dest="nodebug",
        help="Disable debug mode (no auto-reload)",
    )
    p.add_argument("-p", "--port", help="Port (default: the configured port)")
    p.set_defaults(func=run)

    p = subparsers.add_parser("config", help="Show the current settings")
    p.set_defaults(func=show_config)

    p = subparsers.add_parser("create-env", help="Create a documented .env file")
    p.add_argument("-l", "--local_root", help="Root directory of the local storage tier")
    p.set_defaults(func=create_env)

    p = subparsers.add_parser("check-remote", help="Check that the remote storage bucket is reachable")
    p.set_defaults(func=check_remote)

    args = parser.parse_args()

    logging.basicConfig(format="[%(levelname)-7s:%(name)-15s] %(message)s", level=logging.INFO)
    for name in ("botocore", "aiobotocore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    if inspect.iscoroutinefunction(args.func):
        asyncio.run(args.func(args))
    else:
        args.func(args)


if __name__ == "__main__":
    main()
