"""
CLI commands for s3rpc clients and servers.

Options come from the environment (see s3rpc.settings); command line flags
override individual values.
"""

import asyncio
import importlib
import logging
import signal

import click

from s3rpc.client import Client
from s3rpc.errors import CallTimeoutError, ConfigurationError, S3RPCError
from s3rpc.options import ClientOptions, ServerOptions
from s3rpc.schemas import Input
from s3rpc.server import Server
from s3rpc.settings import get_settings

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _parse_metadata(pairs):
    metadata = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--meta")
        metadata[key] = value
    return metadata


def load_handlers(spec: str):
    """Import a handlers mapping given as 'package.module:attribute'."""
    module_name, sep, attribute = spec.partition(":")
    if not sep or not module_name or not attribute:
        raise click.BadParameter(f"expected module:attribute, got {spec!r}", param_hint="--handlers")
    module = importlib.import_module(module_name)
    handlers = getattr(module, attribute)
    if not isinstance(handlers, dict):
        raise click.BadParameter(f"{spec} is not a dict of handlers", param_hint="--handlers")
    return handlers


async def serve_until_signalled(server: Server) -> None:
    """Run the server until SIGINT or SIGTERM, letting the in-flight call finish."""
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM)

    def on_signal():
        print("Received shutdown signal, finishing the current call...")
        server.shutdown()

    for sig in signals:
        loop.add_signal_handler(sig, on_signal)
    try:
        await server.listen_and_serve()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


@click.group()
def cli():
    """CLI commands for s3rpc clients and servers"""
    _configure_logging(get_settings().log_level)


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings().masked()

    print("Current Configuration:")
    print(f"  AWS Region: {settings['aws_region']}")
    print(f"  AWS Endpoint: {settings['aws_endpoint_url']}")
    print(f"  AWS Access Key ID: {settings['aws_access_key_id']}")
    print(f"  AWS Secret Access Key: {settings['aws_secret_access_key']}")
    print(f"  S3 Bucket: {settings['s3_bucket_name']}")
    print(f"  Client Queue URL: {settings['client_queue_url']}")
    print(f"  Server Queue URL: {settings['server_queue_url']}")
    print(f"  Timeout: {settings['timeout_seconds']}s")
    print(f"  Receive Wait: {settings['receive_wait_seconds']}s")


@cli.command()
@click.argument("operation")
@click.argument("filename", type=click.Path(exists=True, dir_okay=False))
@click.option("--meta", "meta", multiple=True, help="Request metadata as key=value, repeatable")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for the response")
def execute(operation, filename, meta, timeout):
    """Execute OPERATION on a server with FILENAME as input"""
    metadata = _parse_metadata(meta)
    overrides = {"timeout": timeout} if timeout is not None else {}

    try:
        client = Client(ClientOptions.from_settings(**overrides))
    except ConfigurationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    # The output file lives in the client's temp directory, so print its
    # content before closing.
    try:
        output = asyncio.run(client.execute(operation, Input(filename=filename, metadata=metadata)))
        print(f"Output: {output.filename}")
        for key, value in sorted(output.metadata.items()):
            print(f"  {key}: {value}")
        with open(output.filename, "rb") as f:
            click.echo(f.read(), nl=False)
    except CallTimeoutError as e:
        raise click.ClickException(f"Timed out: {e}")
    except S3RPCError as e:
        raise click.ClickException(str(e))
    finally:
        client.close()


@cli.command()
@click.option("--handlers", "handlers_spec", required=True,
              help="Handlers mapping to serve, as module:attribute")
def serve(handlers_spec):
    """Serve calls until interrupted"""
    handlers = load_handlers(handlers_spec)

    try:
        server = Server(ServerOptions.from_settings(handlers=handlers))
    except ConfigurationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    print(f"Serving {', '.join(sorted(handlers))} on {server.options.queue}")
    try:
        asyncio.run(serve_until_signalled(server))
    finally:
        server.close()
        print("Server shutdown complete")


if __name__ == "__main__":
    cli()
