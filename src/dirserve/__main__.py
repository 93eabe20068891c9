import sys

from dirserve.cli import main

sys.exit(main())
