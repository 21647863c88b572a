import argparse
import asyncio
import sys

from kms_import import (
    Boto3KeyServiceClient,
    CapabilityNegotiator,
    CapabilityUnsupported,
    ImportKeyWorkflow,
    KmsImportError,
    WorkflowConfig,
)
from kms_import.log import configure_logging


def parse_arguments(argv=None):
    defaults = WorkflowConfig()
    parser = argparse.ArgumentParser(
        description='Create an external AWS KMS key, import generated key material, use it and schedule its deletion.'
    )
    parser.add_argument('--region', type=str, default=defaults.region, help=f'The AWS region (default: {defaults.region})')
    parser.add_argument('--endpoint-url', type=str, default=None, help='Override the KMS endpoint URL')
    parser.add_argument('--description', type=str, default=defaults.description, help='Description of the created key')
    parser.add_argument('--pending-window-days', type=int, default=defaults.pending_window_days,
                        help=f'Days before the key is deleted (default: {defaults.pending_window_days})')
    parser.add_argument('--import-window', type=int, default=defaults.import_window_seconds,
                        help=f'Seconds KMS keeps the imported material (default: {defaults.import_window_seconds})')
    parser.add_argument('--require-pq-tls', action='store_true',
                        help='Fail instead of falling back when post-quantum TLS is unavailable')
    parser.add_argument('--connect-timeout', type=float, default=defaults.connect_timeout)
    parser.add_argument('--read-timeout', type=float, default=defaults.read_timeout)
    parser.add_argument('--log-level', type=str, default=defaults.log_level, help='Logging level (default: INFO)')
    return parser.parse_args(argv)


def config_from_args(args):
    return WorkflowConfig(
        region=args.region,
        endpoint_url=args.endpoint_url,
        description=args.description,
        pending_window_days=args.pending_window_days,
        import_window_seconds=args.import_window,
        require_hardened=args.require_pq_tls,
        connect_timeout=args.connect_timeout,
        read_timeout=args.read_timeout,
        log_level=args.log_level,
    ).validate()


async def main(config):
    logger = configure_logging(config.log_level)

    negotiation = CapabilityNegotiator(strict=config.require_hardened).negotiate()
    if negotiation.hardened_supported:
        logger.info(negotiation.reason)
    else:
        logger.warning(negotiation.reason)

    async with Boto3KeyServiceClient(
        profile=negotiation.profile,
        region_name=config.region,
        endpoint_url=config.endpoint_url,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    ) as kms_client:
        workflow = ImportKeyWorkflow(
            kms_client,
            description=config.description,
            import_window=config.import_window,
            pending_window_days=config.pending_window_days,
            profile=negotiation.profile.value,
        )
        result = await workflow.run()

    print(f'CMK {result.key_id} is scheduled to be deleted at {result.deletion_date}')
    return result


def run(argv=None):
    args = parse_arguments(argv)
    try:
        config = config_from_args(args)
    except ValueError as exc:
        print(f'Invalid arguments: {exc}', file=sys.stderr)
        return 2
    try:
        asyncio.run(main(config))
    except CapabilityUnsupported as exc:
        print(exc, file=sys.stderr)
        return 2
    except KmsImportError as exc:
        stage = exc.stage.name if exc.stage is not None else 'unknown'
        print(f'Import workflow failed before {stage}: {exc}', file=sys.stderr)
        if exc.key_id:
            print(f'CMK {exc.key_id} was created and must be cleaned up manually', file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run())
