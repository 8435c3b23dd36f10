import multiprocessing
import os

# Gunicorn configuration file
# FastAPI runs under the UvicornWorker: gunicorn -c gunicorn_conf.py taskboard.main:app

bind = os.getenv("BIND", "0.0.0.0:8000")

# (2 x num_cores) + 1
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"

timeout = 120
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

name = "taskboard_api"
reload = False
