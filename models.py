from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, BigInteger, String, Text, Boolean, ForeignKey, Enum, UniqueConstraint
from database import Base
from lifecycle import Role, ProductStatus


def _enum_column(enum_cls):
    # store the enum value ("InTransit"), not the member name
    return Enum(enum_cls, native_enum=False, length=20,
                values_callable=lambda e: [m.value for m in e])


class Participant(Base):
    __tablename__ = "participants"
    # registration order; doubles as the enumeration index
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    role: Mapped[Role] = mapped_column(_enum_column(Role), index=True)
    location: Mapped[str] = mapped_column(String(255))
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    authorized: Mapped[bool] = mapped_column(Boolean, default=False)
    registered_at: Mapped[int] = mapped_column(BigInteger)


class Product(Base):
    __tablename__ = "products"
    # allocated by the ledger, not the database, so ids stay gapless
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255))
    variety: Mapped[str] = mapped_column(String(255), default="")
    farm_location: Mapped[str] = mapped_column(String(255))
    farmer: Mapped[str] = mapped_column(String(128), index=True)
    is_organic: Mapped[bool] = mapped_column(Boolean, default=False)
    batch_size: Mapped[int] = mapped_column(BigInteger)
    certifications: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[ProductStatus] = mapped_column(_enum_column(ProductStatus), index=True)
    planted_date: Mapped[int] = mapped_column(BigInteger)
    harvested_date: Mapped[int] = mapped_column(BigInteger, default=0)
    events: Mapped[list["HistoryEvent"]] = relationship(
        "HistoryEvent", back_populates="product", order_by="HistoryEvent.seq"
    )


class HistoryEvent(Base):
    __tablename__ = "history_events"
    __table_args__ = (UniqueConstraint("product_id", "seq"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id"), index=True)
    seq: Mapped[int] = mapped_column(Integer)
    actor: Mapped[str] = mapped_column(String(128))
    role: Mapped[Role] = mapped_column(_enum_column(Role))
    timestamp: Mapped[int] = mapped_column(BigInteger)
    location: Mapped[str] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(255))
    additional_info: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[ProductStatus] = mapped_column(_enum_column(ProductStatus))
    prev_hash: Mapped[str] = mapped_column(String(128))
    hash: Mapped[str] = mapped_column(String(128))
    product: Mapped[Product] = relationship("Product", back_populates="events")

    def payload(self) -> dict:
        """Fields covered by the hash link."""
        return {
            "product_id": self.product_id,
            "seq": self.seq,
            "actor": self.actor,
            "role": self.role.value,
            "location": self.location,
            "action": self.action,
            "additional_info": self.additional_info,
            "status": self.status.value,
        }
