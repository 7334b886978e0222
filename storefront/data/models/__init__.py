#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from storefront.data.models.cart_record import CartRecordModel

__all__ = ["CartRecordModel"]
