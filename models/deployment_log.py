from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from .base import Base


class DeploymentLog(Base):
    __tablename__ = 'deployment_logs'
    id = Column(Integer, primary_key=True, autoincrement=True)
    deployment_id = Column(String(36), ForeignKey('deployments.id'), nullable=False, index=True)
    step = Column(String(32), nullable=False)  # connect, install, scaffold, build, start, verify, complete, failed, cancel
    command = Column(Text, nullable=True)
    output = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    deployment = relationship('Deployment', back_populates='logs')

    def __repr__(self):
        return f"<DeploymentLog(id={self.id}, deployment_id={self.deployment_id}, step='{self.step}')>"
