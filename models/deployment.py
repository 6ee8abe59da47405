from sqlalchemy import Column, Integer, String, Text, DateTime, func
from sqlalchemy.orm import relationship
from .base import Base


class Deployment(Base):
    __tablename__ = 'deployments'
    id = Column(String(36), primary_key=True)
    chain_name = Column(String(30), nullable=False, index=True)
    host = Column(String(45), nullable=False)
    ssh_user = Column(String(64), nullable=False)
    ssh_port = Column(Integer, nullable=False, default=22)
    contact_email = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default='QUEUED', index=True)
    rpc_endpoint = Column(String(255), nullable=True)
    api_endpoint = Column(String(255), nullable=True)
    # FAILED 사유 또는 진행 중 메시지
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    logs = relationship(
        'DeploymentLog',
        back_populates='deployment',
        order_by='DeploymentLog.id',
        cascade='all, delete-orphan',
    )

    def __repr__(self):
        return f"<Deployment(id={self.id}, chain_name='{self.chain_name}', status='{self.status}')>"
