"""Provide the server."""

import argparse
import logging
import os
import sys
from os import environ as env

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from gitway import __version__
from gitway.core import ServerConfig
from gitway.git.http import create_git_router

LOGLEVEL = os.environ.get("GITWAY_LOGLEVEL", "WARNING").upper()
logging.basicConfig(level=LOGLEVEL, stream=sys.stdout)
logger = logging.getLogger("server")
logger.setLevel(LOGLEVEL)

ENV_FILE = find_dotenv()
if ENV_FILE:
    load_dotenv(ENV_FILE)


def parse_bool(value):
    """Parse a true/false command line or environment value."""
    if isinstance(value, bool):
        return value
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "y", "on"):
        return True
    if lowered in ("false", "0", "no", "n", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def create_app(config: ServerConfig) -> FastAPI:
    """Create the FastAPI application for a configuration."""
    application = FastAPI(
        title="gitway",
        description="Git Smart HTTP gateway",
        version=__version__,
        # every other path may name a repository
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.config = config

    if config.enable_metrics:

        @application.get("/metrics", include_in_schema=False)
        async def metrics():
            """Serve Prometheus metrics."""
            return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    application.include_router(create_git_router(config))
    return application


def create_application(args):
    """Create a gitway application from parsed arguments."""
    if args.from_env:
        logger.info("Loading arguments from environment variables")
        _args = get_args_from_env()
        # copy the _args to args
        for key, value in _args.__dict__.items():
            setattr(args, key, value)

    if not args.root:
        raise ValueError("The repository root must be set with --root or GITWAY_ROOT")

    config = ServerConfig(
        root=args.root,
        allow_pull=args.allow_pull,
        allow_push=args.allow_push,
        git_path=args.git_path,
        enable_metrics=args.enable_metrics,
    )
    logger.info(f"Serving git repositories under {config.root}")
    if args.host in ("127.0.0.1", "localhost"):
        logger.info(
            "***Note: If you want to enable access from another host, "
            "please start with `--host=0.0.0.0`.***"
        )
    return create_app(config)


def get_args_from_env():
    """Create gitway arguments from environment variables."""
    # Retrieve the arguments from environment variables
    parser = get_argparser(add_help=False)
    args = parser.parse_args([])

    # Get the argument types from the parser
    arg_types = {
        action.dest: action.type
        for action in parser._actions
        if action.type is not None
    }
    arg_bools = {
        action.dest
        for action in parser._actions
        if isinstance(action, argparse._StoreTrueAction)
    }

    for arg_name in vars(args):
        env_var = "GITWAY_" + arg_name.upper().replace("-", "_")
        if env_var in env:
            value = env[env_var]

            # Handle boolean flags
            if arg_name in arg_bools:
                value = value.lower() in ("true", "1", "yes", "y", "on")
            # Handle other types using the parser's type information
            elif arg_name in arg_types:
                try:
                    value = arg_types[arg_name](value)
                except (ValueError, TypeError, argparse.ArgumentTypeError) as e:
                    logger.warning(
                        f"Failed to convert environment variable {env_var}={value} "
                        f"to type {arg_types[arg_name]}: {str(e)}"
                    )
                    continue

            setattr(args, arg_name, value)

    return args


def get_argparser(add_help=True):
    """Return the argument parser."""
    parser = argparse.ArgumentParser(add_help=add_help)
    parser.add_argument(
        "--from-env",
        action="store_true",
        help="load arguments from environment variables, the environment variables should be in the format of GITWAY_<ARG_NAME_UPPER>",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="host for the gitway server",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=9418,
        help="port for the gitway server",
    )
    parser.add_argument(
        "--root",
        type=str,
        default=None,
        help="the directory containing the git repositories to serve",
    )
    parser.add_argument(
        "--git-path",
        type=str,
        default="git",
        help="path to the git executable",
    )
    parser.add_argument(
        "--allow-pull",
        type=parse_bool,
        default=None,
        help="allow or deny git-upload-pack for all repositories (true/false), "
        "by default each repository's http.uploadpack setting decides",
    )
    parser.add_argument(
        "--allow-push",
        type=parse_bool,
        default=None,
        help="allow or deny git-receive-pack for all repositories (true/false), "
        "by default each repository's http.receivepack setting decides",
    )
    parser.add_argument(
        "--enable-metrics",
        action="store_true",
        help="serve Prometheus metrics at /metrics",
    )
    return parser
