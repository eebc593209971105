#!/usr/bin/env python3
"""
Run script for the Pipe Yard Workflow Engine
"""

from pipeyard import create_app
from pipeyard.build import build_database
from pipeyard.logger import get_logger
import sys
import os
import argparse
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Run 'python generate_env.py' to create a .env file with a secure SECRET_KEY.

logger = get_logger("pipeyard.run")


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description='Pipe Yard Workflow Engine')
    parser.add_argument('--build-only', action='store_true',
                        help='Create the database tables (and seed units) then exit without starting the server')
    parser.add_argument('--seed-units', action='store_true', default=True,
                        help='Insert the seed storage units if missing (default: enabled)')
    parser.add_argument('--no-seed-units', action='store_false', dest='seed_units',
                        help='Do not insert seed storage units')

    return parser.parse_args()


if __name__ == '__main__':
    args = parse_arguments()

    logger.debug("Starting Pipe Yard Workflow Engine...")
    app = create_app()

    build_database(seed_units=args.seed_units, app=app)

    if args.build_only:
        logger.debug("Build completed. Exiting without starting web server.")
        sys.exit(0)

    # FLASK_DEBUG: Enable/disable debug mode (default: False for security)
    debug_mode = os.environ.get('FLASK_DEBUG', 'False').lower() in ('true', '1', 'yes', 'on')

    # USE_RELOADER: Enable/disable auto-reloader (default: False in production)
    use_reloader = os.environ.get('USE_RELOADER', 'False').lower() in ('true', '1', 'yes', 'on')

    # FLASK_HOST: Server host (default: 127.0.0.1 for security)
    host = os.environ.get('FLASK_HOST', '127.0.0.1')

    # FLASK_PORT: Server port (default: 5000)
    port = int(os.environ.get('FLASK_PORT', '5000'))

    if debug_mode:
        logger.warning("DEBUG MODE ENABLED - Do not use in production!")

    logger.info(f"Starting server on {host}:{port} (debug={debug_mode}, reloader={use_reloader})")
    app.run(debug=debug_mode, host=host, port=port, use_reloader=use_reloader)
