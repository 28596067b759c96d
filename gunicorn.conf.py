"""Gunicorn production configuration."""

wsgi_app = "approval_queue.main:app"
pythonpath = "backend"
bind = "0.0.0.0:8000"
# Review sessions live in process memory; one worker keeps a reviewer on one session
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 120
keepalive = 5
accesslog = "-"
errorlog = "-"
loglevel = "info"
