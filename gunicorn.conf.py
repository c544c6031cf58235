import os

# Preload so the template catalog and font scan happen once, before fork
preload_app = True

# Rendering is CPU-bound; scale workers, not threads
workers = int(os.getenv("WEB_CONCURRENCY", "2"))

# Bind
bind = "0.0.0.0:8080"

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"

# Large posters at high DPI take a while
timeout = 180
