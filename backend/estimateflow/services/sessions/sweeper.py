from estimateflow import socketio


def start_idle_sweeper(app, store) -> bool:
    """Start the background eviction loop for idle, empty sessions.

    - No-ops in TESTING mode
    - No-ops when either the ttl or the sweep interval is 0
    Returns True when a task was started.
    """
    if app.config.get('TESTING'):
        return False
    ttl = int(app.config.get('SESSION_IDLE_TTL_SEC', 0))
    interval = int(app.config.get('SESSION_SWEEP_INTERVAL_SEC', 0))
    if ttl <= 0 or interval <= 0:
        app.logger.info("[sweep-disabled] idle session eviction is off")
        return False

    def _worker():
        while True:
            socketio.sleep(interval)
            try:
                store.sweep_idle(ttl)
            except Exception:
                app.logger.exception("[sweep-error] idle sweep failed")

    app.logger.info(f"[sweep-set] ttl={ttl}s interval={interval}s")
    socketio.start_background_task(_worker)
    return True
