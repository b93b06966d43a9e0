from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint, func

from backoffice.db import Base


class Document(Base):
    """One JSON document of a named collection (menu, carts, users)."""

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(64), nullable=False, index=True)
    doc_id = Column(String(64), nullable=False, index=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self):
        return f"<Document {self.collection}/{self.doc_id}>"


MENU = "menu"
CARTS = "carts"
USERS = "users"
