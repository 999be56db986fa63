"""Restaurant POS - inventory, recipe costing and point-of-sale core."""

from restaurant_pos.utils.constants import APP_NAME, APP_VERSION

__version__ = APP_VERSION
__all__ = ["APP_NAME", "__version__"]
