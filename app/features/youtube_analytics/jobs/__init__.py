from .auto_refresh_job import run_auto_refresh_sweep, start_auto_refresh_scheduler
from .refresh_user_job import run_user_refresh

__all__ = ["run_auto_refresh_sweep", "run_user_refresh", "start_auto_refresh_scheduler"]
