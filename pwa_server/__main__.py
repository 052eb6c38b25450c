import sys

from pwa_server.cli import main

sys.exit(main())
