#storefront/data/models/cart_record.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from storefront.data.database import Base


class CartRecordModel(Base):
    __tablename__ = "cart_records"

    #klucz = prefiks + tozsamosc uzytkownika, jeden rekord na tozsamosc
    key = Column(String(255), primary_key=True)
    items = Column(Text, nullable=False)  # JSON: [{"product_id": ..., "quantity": ...}]
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
