# Restaurant occupancy: Database Models
# Import all models here for SQLAlchemy discovery

from app.models.visitor_log import VisitorLog              # noqa
from app.models.current_status import CurrentStatus        # noqa
from app.models.hourly_statistic import HourlyStatistic    # noqa
