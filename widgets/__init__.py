"""
Widget descriptors for the forest widget data engine.
"""

from widgets.integrated_alerts import DESCRIPTOR as INTEGRATED_ALERTS
from widgets.tree_cover import DESCRIPTOR as TREE_COVER
from widgets.tree_loss_primary import DESCRIPTOR as TREE_LOSS_PRIMARY

DESCRIPTORS = (
    INTEGRATED_ALERTS,
    TREE_LOSS_PRIMARY,
    TREE_COVER,
)

__all__ = ['DESCRIPTORS', 'INTEGRATED_ALERTS', 'TREE_LOSS_PRIMARY', 'TREE_COVER']
