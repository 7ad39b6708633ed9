import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from src.stockstay.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Team(Base):
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=True)
    # Stored (non-trial) plan: free | starter | pro
    plan = Column(String(20), nullable=False, default="free")
    is_on_trial = Column(Boolean, nullable=False, default=False)
    trial_plan = Column(String(20), nullable=True)  # starter | pro, only while on trial
    trial_ends_at = Column(DateTime, nullable=True, index=True)  # naive UTC
    # Cache of the effective warehouse limit; rewritten on every mutation
    max_warehouses = Column(Integer, nullable=False, default=1)
    extra_user_slots = Column(Integer, nullable=False, default=0)
    stripe_customer_id = Column(String(255), nullable=True, unique=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_status = Column(String(50), nullable=True)
    billing_interval = Column(String(10), nullable=True)  # month | year
    # `created` time of the last subscription webhook applied to this row
    subscription_synced_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Team {self.id} plan={self.plan} trial={self.trial_plan if self.is_on_trial else None}>"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=True)
    team_id = Column(
        String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=True, index=True
    )
    team_role = Column(String(20), nullable=False, default="member")  # owner | member
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(String(36), primary_key=True, default=_new_id)
    team_id = Column(
        String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True, default="")
    created_at = Column(DateTime, server_default=func.now())
