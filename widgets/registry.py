"""
Widget descriptor registry.

Descriptors are created once, at import, and shared read-only by every
widget instance for the lifetime of the process.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional

from models.data_models import LocationContext, LocationType, WidgetDescriptor
from models.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _admin_level(location: LocationContext) -> str:
    if location.type == LocationType.GLOBAL:
        return 'global'
    if location.adm2 is not None:
        return 'adm2'
    if location.adm1 is not None:
        return 'adm1'
    return 'adm0'


class WidgetRegistry:
    """
    Lookup of widget descriptors by widget id.

    Attributes:
        descriptors (dict): Descriptors keyed by widget id
    """

    def __init__(self, descriptors: Optional[Iterable[WidgetDescriptor]] = None):
        if descriptors is None:
            from widgets import DESCRIPTORS
            descriptors = DESCRIPTORS

        self.descriptors: Dict[str, WidgetDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.widget in self.descriptors:
                raise ConfigurationError(f"Widget {descriptor.widget} registered twice")
            self.descriptors[descriptor.widget] = descriptor

        logger.info(f"Registered {len(self.descriptors)} widgets")

    def get(self, widget: str) -> WidgetDescriptor:
        """
        Get a descriptor by widget id.

        Raises:
            ConfigurationError: If the widget is unknown
        """
        try:
            return self.descriptors[widget]
        except KeyError:
            raise ConfigurationError(f"Unknown widget: {widget}") from None

    def __contains__(self, widget: str) -> bool:
        return widget in self.descriptors

    def __iter__(self) -> Iterator[WidgetDescriptor]:
        return iter(self.descriptors.values())

    def __len__(self) -> int:
        return len(self.descriptors)

    @staticmethod
    def is_eligible(descriptor: WidgetDescriptor, location: LocationContext) -> bool:
        """
        Whether a widget can be shown for a location.

        Checks the supported location types and, for administrative
        locations, the supported depth and the adm0 whitelist.
        """
        if location.type not in descriptor.types:
            return False

        if location.type in (LocationType.GLOBAL, LocationType.COUNTRY, LocationType.REGION):
            if descriptor.admins and _admin_level(location) not in descriptor.admins:
                return False

        whitelist = descriptor.whitelists.get('adm0')
        if whitelist and location.adm0 and location.adm0 not in whitelist:
            return False
        return True

    def widgets_for(self, location: LocationContext) -> List[WidgetDescriptor]:
        """Descriptors eligible for a location, in registration order."""
        return [d for d in self.descriptors.values() if self.is_eligible(d, location)]
