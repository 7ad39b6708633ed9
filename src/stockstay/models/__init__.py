from src.stockstay.core.database import Base

from . import team
from .team import Team, User, Warehouse

__all__ = ["Base", "team", "Team", "User", "Warehouse"]
