from sqlalchemy import Column, String, Text, Integer, ForeignKey, Enum, JSON, Table
from sqlalchemy.orm import relationship
import enum
from .base import Base, TimestampMixin

class LetterStatus(str, enum.Enum):
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    SENT = "sent"
    ARCHIVED = "archived"

letter_documents = Table(
    "letter_documents",
    Base.metadata,
    Column("letter_id", String, ForeignKey("letters.id", ondelete="CASCADE"), primary_key=True),
    Column("document_id", String, ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True),
)

class Letter(Base, TimestampMixin):
    __tablename__ = "letters"

    id = Column(String, primary_key=True)
    firm_id = Column(String, nullable=False, index=True)
    created_by = Column(String, nullable=False)
    template_id = Column(String, ForeignKey("templates.id"), nullable=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    status = Column(Enum(LetterStatus), default=LetterStatus.DRAFT, nullable=False, index=True)
    version = Column(Integer, default=0, nullable=False)
    recipient_name = Column(String)
    recipient_address = Column(Text)
    case_reference = Column(String)
    # "metadata" is reserved on declarative classes
    letter_metadata = Column("metadata", JSON, nullable=False, default=dict)

    # Relationships
    versions = relationship("LetterVersion", back_populates="letter", cascade="all, delete-orphan")
    documents = relationship("Document", secondary=letter_documents)

class LetterVersion(Base, TimestampMixin):
    __tablename__ = "letter_versions"

    id = Column(String, primary_key=True)
    letter_id = Column(String, ForeignKey("letters.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    created_by = Column(String)

    # Relationships
    letter = relationship("Letter", back_populates="versions")
