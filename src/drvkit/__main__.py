import sys

from drvkit.cli import main

sys.exit(main())
