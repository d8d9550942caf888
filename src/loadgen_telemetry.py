import os
import threading
import psutil


def host_telemetry():
    """
    Resource usage of the machine running the load generator.
    Used to tell an overloaded client apart from a slow target.
    """
    # interval=None compares against the previous call and returns immediately
    cpu_percent = psutil.cpu_percent(interval=None)
    ram = psutil.virtual_memory()

    try:
        process = psutil.Process(os.getpid())
        process_rss_mb = round(process.memory_info().rss / (1024 * 1024), 1)
    except psutil.Error:
        process_rss_mb = 0.0

    return {
        "cpu_percent": cpu_percent,
        "ram_percent": ram.percent,
        "process_rss_mb": process_rss_mb,
        "threads": threading.active_count(),
    }
