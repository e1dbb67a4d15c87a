"""
Command Line Interface for product image maintenance.
"""

import argparse
import logging
from typing import List, Optional

import urllib3

from .catalog import CatalogConfig, CatalogDb
from .errors import ImagePipelineError
from .gc_manifest import GcManifest
from .job_stats import JobStats
from .reconciler import OrphanReconciler
from .reference_index import ReferenceIndexBuilder
from .reporter import Reporter
from .reprocessor import ReprocessingDriver
from .s3_client import S3Client
from .s3_config import S3Config
from .storage_lister import StorageLister
from .upload_orchestrator import UploadOrchestrator
from .uploads import ImageUploadService
from .variant_generator import VariantGenerator


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    return logging.getLogger('product_images')


def get_s3_config(args: argparse.Namespace) -> S3Config:
    """Get S3 configuration from environment and CLI overrides."""
    config = S3Config.from_env()

    if getattr(args, 's3_endpoint', None):
        config.endpoint = args.s3_endpoint
    if getattr(args, 's3_bucket', None):
        config.bucket = args.s3_bucket
    if getattr(args, 's3_prefix', None):
        config.prefix = args.s3_prefix
    if getattr(args, 's3_access_key', None):
        config.access_key = args.s3_access_key
    if getattr(args, 's3_secret_key', None):
        config.secret_key = args.s3_secret_key
    if getattr(args, 's3_public_url', None):
        config.public_url = args.s3_public_url

    return config


def get_catalog_config(args: argparse.Namespace) -> CatalogConfig:
    """Get catalog configuration from environment and CLI overrides."""
    config = CatalogConfig.from_env()

    if getattr(args, 'sql_host', None):
        config.host = args.sql_host
    if getattr(args, 'sql_port', None):
        config.port = args.sql_port
    if getattr(args, 'sql_database', None):
        config.database = args.sql_database

    return config


def get_storage_client(args: argparse.Namespace, logger: logging.Logger) -> S3Client:
    """Build the S3 client, raising ValueError if configuration is invalid."""
    config = get_s3_config(args)
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        raise ValueError("S3 configuration invalid")

    logger.info(f"Storage: {config.endpoint or 'aws'} bucket={config.bucket} prefix={config.prefix}")
    return S3Client(config, logger)


def get_catalog(args: argparse.Namespace, logger: logging.Logger) -> CatalogDb:
    """Build the catalog accessor, raising ValueError if configuration is invalid."""
    config = get_catalog_config(args)
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        raise ValueError("Catalog configuration invalid")

    logger.info(f"Catalog: {config.host}:{config.port}/{config.database}")
    return CatalogDb(config, logger)


def storage_prefix(client: S3Client) -> str:
    """Folder to list: the configured prefix with a trailing slash, or the bucket root."""
    prefix = client.config.prefix.strip('/')
    return f"{prefix}/" if prefix else ''


def add_storage_arguments(parser: argparse.ArgumentParser) -> None:
    """Add storage configuration arguments to a parser."""
    s3_group = parser.add_argument_group('S3 Storage')
    s3_group.add_argument('--s3-endpoint', help='Override S3_ENDPOINT')
    s3_group.add_argument('--s3-bucket', help='Override S3_BUCKET')
    s3_group.add_argument('--s3-prefix', help='Override S3_PREFIX')
    s3_group.add_argument('--s3-access-key', help='Override S3_ACCESS_KEY')
    s3_group.add_argument('--s3-secret-key', help='Override S3_SECRET_KEY')
    s3_group.add_argument('--s3-public-url', help='Override S3_PUBLIC_URL')


def add_catalog_arguments(parser: argparse.ArgumentParser) -> None:
    """Add catalog configuration arguments to a parser."""
    sql_group = parser.add_argument_group('Catalog')
    sql_group.add_argument('--sql-host', help='Override SQL_HOST')
    sql_group.add_argument('--sql-port', type=int, help='Override SQL_PORT')
    sql_group.add_argument('--sql-database', help='Override SQL_DATABASE')


def add_mode_arguments(parser: argparse.ArgumentParser) -> None:
    """Mutually exclusive --dry-run / --execute; dry run unless --execute is given."""
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('-n', '--dry-run', dest='execute', action='store_false',
                      help='Only show what would be done (default)')
    mode.add_argument('--execute', dest='execute', action='store_true',
                      help='Actually modify storage')
    parser.set_defaults(execute=False)


def cmd_gc(args: argparse.Namespace) -> int:
    """Execute gc command."""
    logger = setup_logging(args.verbose)
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    try:
        client = get_storage_client(args, logger)
        catalog = get_catalog(args, logger)
    except ValueError:
        return 1

    manifest_path = args.manifest or GcManifest.default_path()
    dry_run = not args.execute
    if dry_run:
        logger.info("Dry run: nothing will be deleted (use --execute to delete)")

    try:
        reconciler = OrphanReconciler(
            storage=client,
            lister=StorageLister(client, logger=logger),
            index_builder=ReferenceIndexBuilder(catalog, client, logger=logger),
            batch_size=args.batch_size,
            batch_delay=args.batch_delay,
            dry_run=dry_run,
            backup_bucket=args.backup_bucket,
            prefix=storage_prefix(client),
            logger=logger
        )
        report = reconciler.run(manifest_path, limit=args.limit)

        if not args.quiet:
            print()
            Reporter().report_reconciliation(report)

        return 0 if report.succeeded else 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"GC failed: {e}")
        return 1


def cmd_restore(args: argparse.Namespace) -> int:
    """Execute restore command."""
    logger = setup_logging(args.verbose)
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    try:
        manifest = GcManifest.load(args.manifest)
        logger.info(f"Loaded manifest: {args.manifest}")
        logger.info(f"  Created: {manifest.created_at}")
        logger.info(f"  Removed: {len(manifest.removed)}")
    except FileNotFoundError:
        logger.error(f"Manifest not found: {args.manifest}")
        return 1
    except Exception as e:
        logger.error(f"Failed to load manifest: {e}")
        return 1

    if manifest.is_stale():
        logger.warning(f"Manifest is {manifest.age_hours:.1f} hours old!")
        if not args.force:
            logger.warning("Use --force to proceed anyway.")
            return 1
        logger.warning("Proceeding anyway due to --force flag.")

    if not manifest.backup_bucket:
        logger.error("Manifest has no backup bucket; nothing to restore from")
        return 1

    if not manifest.removed:
        logger.info("Nothing to restore: the manifest records no removed objects")
        return 0

    try:
        client = get_storage_client(args, logger)
    except ValueError:
        return 1

    try:
        reconciler = OrphanReconciler(
            storage=client,
            lister=None,
            index_builder=None,
            dry_run=False,
            logger=logger
        )
        report = reconciler.restore(manifest)
        if not args.quiet:
            print()
            print(f"Restored: {len(report.removed)}")
            print(f"Failed: {len(report.failed)}")
        return 0 if report.succeeded else 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Restore failed: {e}")
        return 1


def cmd_reprocess(args: argparse.Namespace) -> int:
    """Execute reprocess command."""
    logger = setup_logging(args.verbose)
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    try:
        client = get_storage_client(args, logger)
        catalog = get_catalog(args, logger)
    except ValueError:
        return 1

    logger.info(f"Cadence: {args.cadence}s")
    if args.limit:
        logger.info(f"Test mode: limiting to {args.limit} images")

    try:
        with UploadOrchestrator(
            client,
            late_put_timeout=client.config.read_timeout,
            logger=logger
        ) as orchestrator:
            driver = ReprocessingDriver(
                catalog=catalog,
                storage=client,
                generator=VariantGenerator(logger=logger),
                orchestrator=orchestrator,
                lister=StorageLister(client, logger=logger),
                prefix=storage_prefix(client),
                cadence=args.cadence,
                dry_run=not args.execute,
                force=args.force,
                logger=logger
            )
            stats = driver.run(limit=args.limit)

        if not args.quiet:
            print()
            Reporter().report_job(
                "REPROCESSING" + ("" if args.execute else " [DRY RUN]"), stats
            )

        return 0 if stats.failed == 0 else 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Reprocessing failed: {e}")
        return 1


def cmd_delete(args: argparse.Namespace) -> int:
    """Execute delete command."""
    logger = setup_logging(args.verbose)
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    try:
        client = get_storage_client(args, logger)
    except ValueError:
        return 1

    service = ImageUploadService(client, generator=None, orchestrator=None, logger=logger)
    stats = JobStats(total=1)

    try:
        if not args.execute:
            key = client.key_from_url(args.target)
            if not key:
                logger.error(f"Not an object of this store: {args.target}")
                return 1
            logger.info(f"[DRY RUN] Would delete every variant of {key} (use --execute)")
            stats.skipped += 1
        else:
            removed = service.delete(args.target)
            for key in removed:
                print(f"  Deleted: {key}")
            stats.processed += 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except ImagePipelineError as e:
        logger.error(f"Delete failed: {e}")
        stats.record_failure(str(e))

    if not args.quiet:
        print()
        Reporter().report_job("DELETE" + ("" if args.execute else " [DRY RUN]"), stats)

    return 0 if stats.failed == 0 else 1


def cmd_report(args: argparse.Namespace) -> int:
    """Execute report command."""
    logger = setup_logging(args.verbose)

    try:
        manifest = GcManifest.load(args.manifest)
    except FileNotFoundError:
        logger.error(f"Manifest not found: {args.manifest}")
        return 1
    except Exception as e:
        logger.error(f"Failed to load manifest: {e}")
        return 1

    Reporter().report_manifest(manifest, limit=args.limit)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='product_images',
        description='Product image variant maintenance',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Typical workflow:
  1. Preview:  python -m product_images gc --manifest gc.json
  2. Review:   python -m product_images report --manifest gc.json
  3. Delete:   python -m product_images gc --execute --backup-bucket produtos-backup

Every command is a dry run unless --execute is given.
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # GC command
    gc_parser = subparsers.add_parser('gc', help='Remove stored objects the catalog no longer references')
    gc_parser.add_argument('-m', '--manifest', help='Manifest file to write (default: reports/gc-manifest-<time>.json)')
    add_mode_arguments(gc_parser)
    gc_parser.add_argument('--limit', type=int, metavar='N', help='Handle at most N orphans')
    gc_parser.add_argument('--batch-size', type=int, default=50, help='Keys per delete request (default: 50)')
    gc_parser.add_argument('--batch-delay', type=float, default=0.5, help='Seconds between batches (default: 0.5)')
    gc_parser.add_argument('--backup-bucket', help='Copy each orphan to this bucket before deleting')
    gc_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    gc_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(gc_parser)
    add_catalog_arguments(gc_parser)

    # Restore command
    restore_parser = subparsers.add_parser('restore', help='Copy objects removed by a GC run back from the backup bucket')
    restore_parser.add_argument('-m', '--manifest', required=True, help='Manifest written by gc')
    restore_parser.add_argument('-f', '--force', action='store_true', help='Proceed even if manifest is stale')
    restore_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    restore_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(restore_parser)

    # Reprocess command
    reprocess_parser = subparsers.add_parser('reprocess', help='Regenerate variants for catalog images')
    add_mode_arguments(reprocess_parser)
    reprocess_parser.add_argument('--limit', type=int, metavar='N', help='Handle at most N images')
    reprocess_parser.add_argument('-f', '--force', action='store_true',
                                  help='Regenerate even when variants already exist')
    reprocess_parser.add_argument('-c', '--cadence', type=float, default=1.0, help='Seconds between images')
    reprocess_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    reprocess_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(reprocess_parser)
    add_catalog_arguments(reprocess_parser)

    # Delete command
    delete_parser = subparsers.add_parser('delete', help='Remove every variant of one image')
    delete_parser.add_argument('target', metavar='PATH_OR_URL', help='Canonical path, variant key or public URL')
    add_mode_arguments(delete_parser)
    delete_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    delete_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_storage_arguments(delete_parser)

    # Report command
    report_parser = subparsers.add_parser('report', help='Summarize a saved GC manifest')
    report_parser.add_argument('-m', '--manifest', required=True, help='Manifest file')
    report_parser.add_argument('--limit', type=int, default=20, help='Candidates to list (default: 20)')
    report_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'gc':
        return cmd_gc(parsed_args)
    elif parsed_args.command == 'restore':
        return cmd_restore(parsed_args)
    elif parsed_args.command == 'reprocess':
        return cmd_reprocess(parsed_args)
    elif parsed_args.command == 'delete':
        return cmd_delete(parsed_args)
    elif parsed_args.command == 'report':
        return cmd_report(parsed_args)

    return 1
