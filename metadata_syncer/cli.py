"""Command line entry point: watch the cluster and report full sync candidates."""

import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

from .constants import CSI_MIGRATION, ENV_SYNCER_CONFIG
from .core.config_loader import SyncerConfig, load_config_async
from .core.exceptions import MetadataSyncerError
from .core.feature_states import FeatureStateOrchestrator, get_feature_state_orchestrator
from .core.informer import InformerManager
from .core.kubernetes_client import new_core_api
from .core.logging_config import get_syncer_logger, setup_logging
from .core.settings import SyncerSettings, get_settings
from .syncer.discovery import get_bound_pvs, get_pvs_in_bound_available_or_released


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="CSI volume metadata syncer discovery")
    parser.add_argument(
        "--config",
        default=os.getenv(ENV_SYNCER_CONFIG, "config/syncer.yml"),
        help="Configuration file path",
    )
    parser.add_argument("--kubeconfig", default=None, help="Kubeconfig path (default: in-cluster)")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL setting)",
    )
    parser.add_argument("--log-dir", default=os.getenv("LOG_DIR"), help="Directory for syncer.log")
    parser.add_argument("--interval", type=float, default=60.0, help="Seconds between discovery passes")
    parser.add_argument("--once", action="store_true", help="Run a single discovery pass and exit")
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )
    return parser.parse_args(argv)


class _DiscoveryContext:
    """SyncerContext without a backend: enough for PV discovery."""

    def __init__(self, orchestrator: FeatureStateOrchestrator, informer_manager: InformerManager):
        self.orchestrator = orchestrator
        self.pv_lister = informer_manager.pv_lister()
        self.pvc_lister = informer_manager.pvc_lister()
        self.pod_lister = informer_manager.pod_lister()
        self.migration_service = None


async def run(args: argparse.Namespace, config: SyncerConfig, settings: SyncerSettings) -> None:
    logger = get_syncer_logger()

    core_api = new_core_api(args.kubeconfig)
    informer_manager = InformerManager(core_api, config.informer.watch_timeout_seconds)
    orchestrator = await get_feature_state_orchestrator(
        config.feature_states,
        core_api=core_api,
        informer_manager=informer_manager,
        fetch_timeout=settings.configmap_fetch_timeout,
    )
    synced = await asyncio.to_thread(informer_manager.wait_for_cache_sync, settings.configmap_fetch_timeout)
    if not synced:
        logger.warning("Informer caches not synced before timeout, results may be partial")

    context = _DiscoveryContext(orchestrator, informer_manager)
    try:
        while True:
            pvs = get_pvs_in_bound_available_or_released(context)
            bound = get_bound_pvs(context)
            logger.info(
                "Discovery pass complete",
                full_sync_candidates=len(pvs),
                bound_csi_pvs=len(bound),
                migration_enabled=orchestrator.is_enabled(CSI_MIGRATION),
                feature_states=dict(orchestrator.feature_states()),
            )
            if args.once:
                break
            await asyncio.sleep(args.interval)
    finally:
        informer_manager.stop()


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    settings_error: ValueError | None = None
    try:
        settings = get_settings()
    except ValueError as e:
        settings, settings_error = None, e

    log_level = args.log_level or (settings.log_level if settings else None)
    setup_logging(log_dir=args.log_dir, log_level=log_level)
    logger = get_syncer_logger()

    if settings_error is not None:
        logger.error("Invalid settings", error=str(settings_error))
        sys.exit(2)

    try:
        config = asyncio.run(load_config_async(args.config))
    except (MetadataSyncerError, ValueError) as e:
        logger.error("Invalid configuration", error=str(e))
        sys.exit(2)

    if args.validate_config:
        logger.info("Configuration validation successful", config=args.config)
        return

    try:
        asyncio.run(run(args, config, settings))
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
    except Exception as e:
        logger.error("Syncer error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
