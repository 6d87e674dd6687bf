#!/usr/bin/env python
"""
Mini Drive Application Entry Point.
Run this file to start the development server.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from minidrive import create_app  # noqa: E402

# Create application instance
app = create_app(os.environ.get('FLASK_ENV', 'development'))

if __name__ == '__main__':
    # Get host and port from environment or use defaults
    host = os.environ.get('FLASK_HOST', '0.0.0.0')
    port = int(os.environ.get('FLASK_PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

    app.logger.info(
        'Mini Drive development server on http://%s:%s (env=%s, debug=%s)',
        host, port, os.environ.get('FLASK_ENV', 'development'), debug,
    )

    app.run(host=host, port=port, debug=debug)
