from sqlalchemy import Column, String, Text, Integer, Boolean, Enum
import enum
from .base import Base, TimestampMixin

class ProcessingStatus(str, enum.Enum):
    PENDING = "pending"
    EXTRACTED = "extracted"
    FAILED = "failed"

class Document(Base, TimestampMixin):
    """Supporting case document; the pipeline only reads its extracted text."""
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    firm_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    filename = Column(String, nullable=False)
    extracted_text = Column(Text)
    page_count = Column(Integer)
    processing_status = Column(Enum(ProcessingStatus), default=ProcessingStatus.PENDING, index=True)

class Template(Base, TimestampMixin):
    __tablename__ = "templates"

    id = Column(String, primary_key=True)
    firm_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
