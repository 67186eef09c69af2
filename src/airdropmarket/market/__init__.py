from .claim_market import ClaimMarket
from .deployment import Deployment, deploy

__all__ = ["ClaimMarket", "Deployment", "deploy"]
