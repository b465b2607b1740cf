import sys

from borg_exporter.app import main

sys.exit(main())
