from .logger import setup_logger
from .session_limiter import SessionLimiter, session_limiter
from .timeouts import with_deadline, run_blocking

__all__ = ["setup_logger", "SessionLimiter", "session_limiter", "with_deadline", "run_blocking"]
