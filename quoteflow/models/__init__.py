"""Central model registry. Import all models so Alembic autodiscover works."""

from quoteflow.database import Base  # noqa: F401

from quoteflow.models.opportunity import Opportunity  # noqa: F401
from quoteflow.models.supplier import Supplier  # noqa: F401
from quoteflow.models.quote_request import QuoteRequest, QuoteRequestSupplier  # noqa: F401
from quoteflow.models.supplier_response import SupplierResponse, ResponseLineItem  # noqa: F401
