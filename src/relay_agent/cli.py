"""
Command line entry point.

    relay-agent run "open an issue in octo/docs about missing docs"
    relay-agent serve

`run` spawns the tool server, drives the reasoning loop with console prompts
and prints a summary. `serve` is the tool server itself, speaking JSON-RPC on
stdin/stdout.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from . import __version__
from .config import AgentSettings, ProxySettings
from .console import ConsoleCheckpoint, ConsoleFieldProvider, print_summary
from .core.agent import ReactAgent
from .core.schemas import RunStatus
from .errors import RelayError
from .llm import ChatCompletionsBackend, OpperBackend
from .mcp.catalog import HttpCatalogStore, JsonFileCatalogStore
from .mcp.proxy import UpstreamSessionProxy
from .mcp.server import ToolServer
from .mcp.transport import StdioTransport

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relay-agent",
        description="Drive a remote tool catalog from a language model.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the reasoning loop for a query")
    run.add_argument("query", nargs="?", help="Request to handle (prompted if omitted)")
    run.add_argument("--max-iterations", type=int, default=None, help="Iteration ceiling")
    run.add_argument(
        "--no-checkpoint",
        action="store_true",
        help="Do not ask whether the task is complete after each iteration",
    )
    run.add_argument(
        "--native-tools",
        action="store_true",
        help="Offer the catalog as native tools to the model backend",
    )

    subparsers.add_parser("serve", help="Run the tool server on stdin/stdout")
    return parser


def _model_backend(settings: AgentSettings):
    if settings.model_backend == "opper":
        return OpperBackend(api_key=settings.model_api_key, model=settings.model)
    return ChatCompletionsBackend(
        base_url=settings.model_base_url,
        model=settings.model,
        api_key=settings.model_api_key,
        max_tokens=settings.max_tokens,
    )


async def run_agent(args: argparse.Namespace) -> int:
    settings = AgentSettings.from_env()
    query = args.query
    if not query:
        query = (await asyncio.to_thread(input, "What should I do? ")).strip()
    if not query:
        print("Nothing to do.")
        return 1

    model = _model_backend(settings)
    try:
        async with StdioTransport(settings.server_config()) as transport:
            agent = ReactAgent(
                model=model,
                transport=transport,
                field_provider=ConsoleFieldProvider(),
                checkpoint=None if args.no_checkpoint else ConsoleCheckpoint(),
                max_iterations=args.max_iterations or settings.max_iterations,
                max_execution_retries=settings.max_execution_retries,
                max_parameter_retries=settings.max_parameter_retries,
                hooks=[print_summary],
                native_tools=args.native_tools,
                verbose=True,
            )
            result = await agent.process(query)
    finally:
        if isinstance(model, ChatCompletionsBackend):
            await model.close()

    return 0 if result.status == RunStatus.COMPLETED else 1


async def run_server() -> int:
    settings = ProxySettings.from_env()
    if settings.catalog_url:
        catalog = HttpCatalogStore(settings.catalog_url)
    else:
        catalog = JsonFileCatalogStore(settings.catalog_path)

    async with UpstreamSessionProxy(settings.upstream_config()) as proxy:
        server = ToolServer(catalog, proxy=proxy)
        await server.start()
        await server.serve_stdio()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    # stdout is the protocol channel when serving
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    try:
        if args.command == "serve":
            return asyncio.run(run_server())
        return asyncio.run(run_agent(args))
    except RelayError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
