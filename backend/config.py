import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Dev server
    HOST = os.environ.get('HOST', '127.0.0.1')
    PORT = int(os.environ.get('PORT', '5050'))
    # Comma-separated CORS allow-list. Unset means any localhost origin (dev default).
    CLIENT_ORIGIN = os.environ.get('CLIENT_ORIGIN')
    # Empty sessions idle longer than this are evicted (seconds). 0 disables.
    SESSION_IDLE_TTL_SEC = int(os.environ.get('SESSION_IDLE_TTL_SEC', '21600'))
    # Background sweep cadence (seconds). 0 disables the sweeper.
    SESSION_SWEEP_INTERVAL_SEC = int(os.environ.get('SESSION_SWEEP_INTERVAL_SEC', '300'))
    # Send other participants' votes as placeholders until the round is revealed
    HIDE_VOTES_UNTIL_REVEAL = os.environ.get('HIDE_VOTES_UNTIL_REVEAL', '').lower() in ('1', 'true', 'yes')
