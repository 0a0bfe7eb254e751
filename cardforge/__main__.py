import sys

from cardforge.cli import main

sys.exit(main())
