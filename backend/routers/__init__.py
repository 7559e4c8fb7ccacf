from routers.stats import router as stats_router
from routers.surveys import router as surveys_router

__all__ = ["stats_router", "surveys_router"]
