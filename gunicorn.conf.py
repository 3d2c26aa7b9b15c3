from config import _env_bool, _env_int, _env_str

wsgi_app = "wsgi:app"
bind = f"0.0.0.0:{_env_int('PORT', 5002)}"

# gthread: requests mostly wait on the database or on disk.
worker_class = _env_str("GUNICORN_WORKER_CLASS", "gthread") or "gthread"
workers = max(1, _env_int("WEB_CONCURRENCY", 2))
threads = max(1, _env_int("PYTHON_THREADS", 4))

# Off by default; with RENDER_MODE=thread each worker renders in its own process.
preload_app = _env_bool("GUNICORN_PRELOAD_APP", False)

timeout = max(10, _env_int("GUNICORN_TIMEOUT", 60))
graceful_timeout = max(5, _env_int("GUNICORN_GRACEFUL_TIMEOUT", 30))
keepalive = max(1, _env_int("GUNICORN_KEEPALIVE", 5))

accesslog = "-"
errorlog = "-"
loglevel = _env_str("GUNICORN_LOG_LEVEL", "info").lower()

max_requests = max(0, _env_int("GUNICORN_MAX_REQUESTS", 1000))
max_requests_jitter = max(0, _env_int("GUNICORN_MAX_REQUESTS_JITTER", 50))
