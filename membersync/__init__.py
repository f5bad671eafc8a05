"""MINDBODY ⇔ Brivo OnAir membership sync.

To run a bulk sync:
    membersync sync

To serve webhooks:
    gunicorn -c gunicorn.conf.py "membersync.flask_app:create_app()"

To use the Brivo client library:
    from membersync.core.brivo import BrivoClient, UserService
"""
# Note: flask_app is not imported here so CLI runs do not load Flask

__version__ = "1.0.0"
