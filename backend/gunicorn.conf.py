import os

# WSGI entrypoint (application factory)
wsgi_app = "sessionguard:create_app()"

# Bind & workers
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
# refresh requests are handled concurrently; the store arbitrates rotation races
threads = int(os.getenv("GUNICORN_THREADS", "4"))
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by Docker)
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Trust proxy headers (client IP is recorded on every token)
forwarded_allow_ips = "*"
proxy_protocol = False
