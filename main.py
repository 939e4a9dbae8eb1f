#!/usr/bin/env python3
"""
Main entry point for the SpotFinder local API
"""

from spotfinder.app import configure_logging, create_app
from spotfinder.config import get_settings

if __name__ == '__main__':
    configure_logging(log_file='app.log')
    settings = get_settings()
    app = create_app(settings=settings)
    app.run(debug=False, host=settings.host, port=settings.port, threaded=True)
