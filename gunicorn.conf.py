"""
Gunicorn configuration for the OneAccount API

    gunicorn -c gunicorn.conf.py oneaccount.main:app
"""
import multiprocessing
import os

# Server socket
bind = os.getenv("ONEACCOUNT_BIND", "127.0.0.1:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("ONEACCOUNT_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 120
keepalive = 5

# Logging; "-" writes to stdout/stderr
accesslog = os.getenv("ONEACCOUNT_ACCESS_LOG", "-")
errorlog = os.getenv("ONEACCOUNT_ERROR_LOG", "-")
loglevel = os.getenv("ONEACCOUNT_LOG_LEVEL", "info").lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

proc_name = "oneaccount-api"
daemon = False
capture_output = True

# Tables are created once at startup before workers fork
preload_app = True
graceful_timeout = 30
