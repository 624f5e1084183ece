"""
Forest Widget Data Engine

Command line entry point: resolves, fetches and prints widget data (or the
download descriptors of a widget) for one location as JSON.
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from config.config_manager import ConfigManager
from config.constants import DEFAULT_CONFIG_PATH
from models.data_models import LocationContext, LocationType
from models.errors import WidgetEngineError
from services.data_api_client import DataAPIClient
from services.metadata_service import MetadataService
from services.widget_service import WidgetDataService
from widgets.registry import WidgetRegistry

logger = logging.getLogger(__name__)


def initialize_services(config: ConfigManager) -> WidgetDataService:
    """Initialize all application services from configuration."""
    client = DataAPIClient(
        base_url=config.get_data_api_url(),
        version=config.get_dataset_version(),
        api_key=config.get_api_key(),
        timeout=config.get_request_timeout(),
    )

    metadata_service = MetadataService(
        static_bounds=config.get_dataset_bounds(),
        client=client if config.get_fetch_remote_metadata() else None,
        cache_duration=config.get_metadata_cache_duration(),
    )

    service = WidgetDataService(
        registry=WidgetRegistry(),
        client=client,
        metadata_service=metadata_service,
        max_workers=config.get_max_workers(),
        geostore_origin=config.get_geostore_origin(),
    )
    logger.info("Services initialized successfully")
    return service


def parse_setting(item: str):
    """Parse a `key=value` option; values are read as JSON when possible."""
    key, sep, raw = item.partition('=')
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected key=value, got {item!r}")
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return key, value


def build_location(args: argparse.Namespace) -> LocationContext:
    return LocationContext(
        type=LocationType(args.type),
        adm0=args.adm0,
        adm1=args.adm1,
        adm2=args.adm2,
        geostore=args.geostore,
        area_id=args.area_id,
        status=args.status,
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch forest widget data for a location")
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH, help="Path to the YAML configuration file")
    parser.add_argument('--type', default='global', choices=[t.value for t in LocationType], help="Location type")
    parser.add_argument('--adm0', help="ISO3 country code")
    parser.add_argument('--adm1', type=int, help="First-level administrative id")
    parser.add_argument('--adm2', type=int, help="Second-level administrative id")
    parser.add_argument('--geostore', help="Geostore id of a geometry-backed location")
    parser.add_argument('--area-id', dest='area_id', help="WDPA, use-area or user-area id")
    parser.add_argument('--status', choices=['draft', 'saved'], help="User-area status")
    parser.add_argument('--widget', help="Widget id; lists eligible widgets when omitted")
    parser.add_argument('--setting', action='append', type=parse_setting, default=[],
                        help="Widget setting as key=value (repeatable)")
    parser.add_argument('--map-page', action='store_true', help="Resolve parameters in map page context")
    parser.add_argument('--download', action='store_true', help="Print download descriptors instead of data")
    return parser


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)

    config = ConfigManager(args.config)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.get_log_level(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    service = initialize_services(config)
    try:
        location = build_location(args)
        service.set_location(location)
        service.set_context(is_map_page=args.map_page)

        if not args.widget:
            output = [d.widget for d in service.registry.widgets_for(location)]
        elif args.download:
            output = [dataclasses.asdict(d) for d in service.get_data_url(args.widget, dict(args.setting))]
        else:
            future = service.get_data(args.widget, dict(args.setting))
            if future is None:
                params = service.resolve(args.widget)
                output = {'ready': False, 'missing': list(params.missing)}
            else:
                output = dataclasses.asdict(future.result())
    except WidgetEngineError as e:
        logger.error(f"Error fetching widget data: {str(e)}")
        return 1
    finally:
        service.shutdown()

    print(json.dumps(output, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
