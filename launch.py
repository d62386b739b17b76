"""
Start the obesity dashboard.

Binds to all interfaces when running on a hosting platform (``DYNO`` set)
and to localhost otherwise. A ``PORT`` assigned by the platform is passed
on to Streamlit. Extra command line arguments go to ``streamlit run``.
"""

from __future__ import annotations

import logging
import os
import sys

from streamlit.web import cli as stcli

from utils import server_address

logger = logging.getLogger(__name__)

APP_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'dashboard_obesity.py')


def streamlit_args(environ: dict[str, str] | None = None) -> list[str]:
    """Command line for ``streamlit run`` in the current environment."""
    env = os.environ if environ is None else environ
    args = ['streamlit', 'run', APP_PATH, '--server.address', server_address(env)]
    if env.get('PORT'):
        args += ['--server.port', env['PORT']]
    return args


def main() -> None:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    args = streamlit_args()
    logger.info("Starting dashboard: %s", " ".join(args[1:]))
    sys.argv = args + sys.argv[1:]
    sys.exit(stcli.main())


if __name__ == '__main__':
    main()
