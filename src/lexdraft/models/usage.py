from sqlalchemy import Column, String, Integer, Float, JSON
from .base import Base, TimestampMixin

class AIUsage(Base, TimestampMixin):
    __tablename__ = "ai_usage"

    id = Column(String, primary_key=True)
    firm_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    operation_type = Column(String, nullable=False)
    model_id = Column(String, nullable=False)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    cost = Column(Float, nullable=False, default=0.0)
    request_id = Column(String)
    letter_id = Column(String, index=True)
    job_id = Column(String, index=True)
    processing_time_ms = Column(Integer)
    document_ids = Column(JSON, default=list)
    details = Column(JSON, default=dict)
