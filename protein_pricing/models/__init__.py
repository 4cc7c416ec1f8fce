"""Database models — re-exports all models.

Import from here:  from protein_pricing.models import Product, FreightRate, ...
Or from submodules: from protein_pricing.models.catalog import Product
"""

from .base import Base  # noqa: F401

# Tenants & Users
from .auth import Organization, User  # noqa: F401

# Catalog
from .catalog import Product, UploadBatch, Warehouse, Zone  # noqa: F401

# Freight
from .freight import FreightRate  # noqa: F401

# Pricing
from .pricing import PriceSheet, PriceSheetItem  # noqa: F401

# Deals
from .deals import ManufacturerDeal  # noqa: F401

# Customers
from .customers import Customer  # noqa: F401

# Resilience & AI usage
from .resilience import AIProcessingLog, CircuitBreakerState, RateLimitEntry  # noqa: F401
