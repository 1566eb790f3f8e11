# Import models so that SQLAlchemy metadata includes them on app startup
from .user import User  # noqa: F401
from .store import Store  # noqa: F401
from .product import Product  # noqa: F401
from .promotion import Promotion  # noqa: F401
from .coupon import Coupon  # noqa: F401
from .highlight import HighlightConfiguration, HighlightSection, HighlightImpression  # noqa: F401
