# =============================================================================
# Mini Drive - Gunicorn Production Configuration
# =============================================================================
import os
import multiprocessing

# Bind
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Workers: 2 * CPU + 1, capped at 4 for small instances
workers = min(multiprocessing.cpu_count() * 2 + 1, 4)
threads = 2

# Preload app to save memory (shared code across workers)
preload_app = True

# Uploads are read fully into memory (10 MB cap) before storage
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logging. The access log omits the request line: share tokens and signed
# download tokens travel in the URL path.
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
access_log_format = '%(h)s %(t)s "%(m)s" %(s)s %(b)s %(L)s'

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 50

# Security: limit request sizes
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

# Server mechanics
worker_class = "gthread"
forwarded_allow_ips = os.environ.get("FORWARDED_ALLOW_IPS", "127.0.0.1")
